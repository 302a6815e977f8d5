import sys
from logging import Logger
from pathlib import Path

import yaml

"""
Config
Loads the export configuration (service id, API keys, endpoints, request
and output options) from a YAML file.
"""


class ConfigReader:
    def __init__(self, log: Logger, configs_path: Path) -> None:
        """Initializes the reader with a configuration file path and a logger.

        :param configs_path: Path to the YAML configuration file.
        :param log: Logger instance for logging messages.
        """
        self.configs_path = Path(configs_path)
        self.configs_data = None
        self.log = log

    def load_configurations(self) -> "ConfigReader":
        """Loads the YAML file into the configs_data attribute.

        :return: Self for fluent interface.
        :raises SystemExit: If the file is missing, unreadable or not a mapping.
        """
        try:
            self._check_path_exists()
            try:
                with open(self.configs_path, "rb") as configs_file:
                    self.configs_data = yaml.safe_load(configs_file)
            except Exception as e:
                self.log.error(
                    "Issue loading file '%s': %s" % (self.configs_path, e)
                )
                sys.exit(1)
        except FileNotFoundError as e:
            self.log.error("Issue loading file: %s" % (e))
            sys.exit(1)

        if not isinstance(self.configs_data, dict):
            self.log.error(
                "Config file '%s' must contain a mapping at the top level."
                % (self.configs_path)
            )
            sys.exit(1)
        return self

    def _check_path_exists(self) -> None:
        """Checks if the config file exists at the specified path.

        :raises FileNotFoundError: If the configuration file does not exist.
        """
        if not self.configs_path.exists():
            raise FileNotFoundError(
                "The file '%s' does not exist." % (self.configs_path)
            )
