from .errors import CfgChoiceInvalidError, CfgValidationError, CfgValueInvalidError
from .settings import DEFAULT_SETTINGS_PATH, AppSettings, load_settings, settings_from_dict

__all__ = [
    "AppSettings",
    "CfgChoiceInvalidError",
    "CfgValidationError",
    "CfgValueInvalidError",
    "DEFAULT_SETTINGS_PATH",
    "load_settings",
    "settings_from_dict",
]
