from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    A single environment setting a client needs before it can be used.

    Attributes:
        env_key (str): Raw key, prefixed by the client with "{TYPE}_{ENGINE}_" (e.g. "BASE_URL").
        val_type (str): "string", "number", "bool" or "list".
        default (str | int | float | bool | list | None): Fallback value. None marks the key as required.
    """

    env_key: str
    val_type: str = "string"
    default: str | int | float | bool | list | None = None
