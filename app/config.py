from dynaconf import Dynaconf, Validator

settings = Dynaconf(
    settings_files=["settings.toml", ".secrets.toml"],
    environments=True,
    env_switcher="ENV_FOR_DYNACONF",
    envvar_prefix="FEDISCUS",
    load_dotenv=True,
    validators=[
        Validator("DOMAIN", must_exist=True),
        Validator("USERNAME", must_exist=True),
        Validator("PRIVATE_KEY_PATH", must_exist=True),
        Validator("TAG", default="#fediscus"),
        Validator("DATABASE_URL", default="sqlite+aiosqlite:///fediscus.db"),
    ],
)
