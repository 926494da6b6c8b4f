import logging
import os
import re
import sys
from pathlib import Path
from typing import Optional, Dict, Any

import yaml
from dotenv import load_dotenv

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"


class BotConfig:
    def __init__(self):
        self.TOKEN = None
        self.GUILD_ID = None

    @staticmethod
    def load_config(config_path: str) -> Optional[Dict[str, Any]]:
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            Dictionary containing the configuration or None if loading fails

        Example YAML file:
            bot:
              token: your-bot-token
              guild_id: "123456789012345678"
        """
        path = Path(config_path)

        if not path.exists():
            log.info("Config file not found: %s, using environment only", config_path)
            return None

        try:
            with path.open('r', encoding='utf-8') as file:
                config = yaml.safe_load(file)

            if not isinstance(config, dict):
                log.error("Invalid YAML structure in %s: root element must be a mapping", config_path)
                return None

            return config

        except yaml.YAMLError as e:
            log.error("Error parsing YAML file %s: %s", config_path, e)
            return None
        except OSError as e:
            log.error("Could not read config file %s: %s", config_path, e)
            return None

    @staticmethod
    def get_setting(env_key: str, config: Optional[dict], key: str) -> Optional[str]:
        """Read ``env_key`` from the environment, falling back to ``bot.<key>`` in the config file."""
        value = os.getenv(env_key)

        if value is None:
            section = (config or {}).get("bot")
            if not isinstance(section, dict) or section.get(key) is None:
                return None
            value = section[key]

        # yaml hands back ints for unquoted ids
        return str(value).strip()

    @staticmethod
    def is_valid_snowflake(s):
        """
        Check if the given string is a valid Discord snowflake.

        A Discord snowflake must consist of 17 to 20 digits.
        """
        return bool(re.fullmatch(r"\d{17,20}", s))

    def initialize(self, config_path: Optional[str] = None):
        """Load and validate the bot configuration, exiting on fatal problems."""
        load_dotenv()
        config = self.load_config(config_path or os.getenv("EXPORTBOT_CONFIG", DEFAULT_CONFIG_PATH))

        self.TOKEN = self.get_setting("DISCORD_TOKEN", config, "token")
        self.GUILD_ID = self.get_setting("GUILD_ID", config, "guild_id")

        if not self.TOKEN:
            log.error("Missing DISCORD_TOKEN (set it in the environment, .env or bot.token in the config file)")
            sys.exit(1)

        # an empty GUILD_ID means global registration
        if not self.GUILD_ID:
            self.GUILD_ID = None
        elif not self.is_valid_snowflake(self.GUILD_ID):
            log.error("Invalid Guild ID format: %s", self.GUILD_ID)
            sys.exit(1)

        return self
