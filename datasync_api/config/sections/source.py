from datasync_api.config.serializable import Serializable
from datasync_api.secret import Secret


class Source(Serializable):
    url: str = ""
    page_size: int = 100
    timeout: float = 30.0
    records_key: str = "records"
    cursor_key: str = "next_cursor"
    id_field: str = "id"
    updated_at_field: str = "updated_at"
    deleted_field: str = "deleted"
    updated_since_param: str = "updated_since"

    def __init__(self) -> None:
        self._secret = Secret("")

    @property
    def secret(self) -> Secret:
        return self._secret

    @secret.setter
    def secret(self, value: Secret | str) -> None:
        self._secret = value if isinstance(value, Secret) else Secret(value)
