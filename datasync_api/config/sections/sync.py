from datasync_api.config.serializable import Serializable


class Sync(Serializable):
    target: str = "default"
    checkpoint_backend: str = "django"
    max_attempts: int = 5
    initial_delay: float = 1.0
    max_delay: float = 30.0
    max_pages: int | None = None
    apply_deletes: bool = False
