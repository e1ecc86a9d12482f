from datasync_api.config.serializable import Serializable


class Django(Serializable):
    secret_key: str = "datasync-insecure-key"
    db_engine: str = "django.db.backends.sqlite3"
    db_name: str = "datasync.sqlite3"
    db_host: str = ""
    db_port: str = ""
    db_user: str = ""
    db_password: str = ""
