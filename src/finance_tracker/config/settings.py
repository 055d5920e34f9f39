from pathlib import Path
import json
from typing import Dict, Any

# Package defaults (bundled with code)
PACKAGE_CONFIG_DIR = Path(__file__).parent / "defaults"

# User configs (relative to the working directory, gitignored)
USER_CONFIG_DIR = Path("config")

class ConfigLoader:
    """Load configuration with user overrides"""

    @staticmethod
    def load_config(config_name: str) -> Dict[str, Any]:
        """
        Load config with fallback: user config -> default config

        Args:
            config_name: Name of the config file (e.g., 'settings.json')

        Raises:
            FileNotFoundError: If no config file was found

        Returns:
            Parsed JSON configuration
        """
        user_config_path = USER_CONFIG_DIR / config_name
        if user_config_path.exists():
            with open(user_config_path) as f:
                return json.load(f)

        default_config_path = PACKAGE_CONFIG_DIR / config_name
        if default_config_path.exists():
            with open(default_config_path) as f:
                return json.load(f)

        raise FileNotFoundError(
            f"Config file '{config_name}' not found in:\n"
            f" - {user_config_path}\n"
            f" - {default_config_path}"
        )

    @staticmethod
    def load_settings() -> Dict[str, Any]:
        """
        Load application settings.

        Sections missing from a user override are taken from the packaged
        defaults, so a user file only needs the keys it changes.
        """
        with open(PACKAGE_CONFIG_DIR / "settings.json") as f:
            defaults = json.load(f)

        settings = ConfigLoader.load_config("settings.json")
        merged = dict(defaults)
        for section, value in settings.items():
            if isinstance(value, dict) and isinstance(defaults.get(section), dict):
                merged[section] = {**defaults[section], **value}
            else:
                merged[section] = value
        return merged
