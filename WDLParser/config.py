# Portions copied from AirflowConfigParser --
#  https://github.com/apache/airflow/blob/master/airflow/configuration.py
"""
Configuration options for the parser and expression evaluator, e.g. ``[parser] max_syntax_errors``
"""

import os
import configparser
import logging
from typing import Optional, List, Dict, Any
from ._util import StructuredLogMessage as _


class ConfigMissing(Exception):
    # configparser.No{Option,Section}Error have vague hard-coded error messages
    pass


class Section:
    """One section of a :class:`Loader`, e.g. ``cfg["parser"]["wdl_version"]``"""

    def __init__(self, parent: "Loader", section: str):
        self._parent = parent
        self._section = section

    def __getitem__(self, key: str) -> str:
        return self._parent.get(self._section, key)

    def get_int(self, key: str) -> int:
        return self._parent.get_int(self._section, key)


class Loader:
    """
    Configuration options, identified by section & key, are sourced in the following priority
    order:

    1. Supplied ``overrides`` dict, ``{"section": {"key": value}}``
    2. Environment variables ``WDLPARSER__SECTION__KEY`` (uppercased with double-underscores)
    3. Custom configuration file: the first extant one of ``filenames``, or if ``filenames`` is
       None, of the colon-separated list in environment variable ``WDLPARSER_CFG``
    4. ``WDLParser/config_templates/default.cfg`` from installed package

    Values may be quoted, and environment variables in them are expanded.
    """

    _logger: logging.Logger
    _layers: List[configparser.ConfigParser]

    cfg_filename: Optional[str] = None

    def __init__(
        self,
        logger: logging.Logger,
        filenames: Optional[List[str]] = None,
        overrides: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        self._logger = logger
        self._layers = [configparser.ConfigParser() for layer in range(3)]
        file_cp, defaults_cp = self._layers[1:]

        default_cfg = os.path.join(os.path.dirname(__file__), "config_templates", "default.cfg")
        self._logger.debug(_("read configuration defaults", filename=default_cfg))
        defaults_cp.read(default_cfg)

        if filenames is None:
            filenames = [fn for fn in os.environ.get("WDLPARSER_CFG", "").split(":") if fn]
        extant = [fn for fn in filenames if os.path.isfile(fn)]
        if extant:
            self._logger.info(_("read configuration file", path=extant[0]))
            file_cp.read(extant[0])
            self.cfg_filename = extant[0]
        elif filenames:
            self._logger.debug(_("no configuration file found", filenames=filenames))

        if overrides:
            self.override(overrides)

    def override(self, options: Dict[str, Dict[str, Any]]) -> None:
        options = {
            section.lower(): {key.lower(): str(v) for key, v in kvs.items()}
            for section, kvs in options.items()
            if kvs
        }
        if options:
            self._logger.debug(_("applying configuration overrides", **options))
            self._layers[0].read_dict(options)

    def get(self, section: str, key: str) -> str:
        section, key = str(section).lower(), str(key).lower()
        overrides_cp, file_cp, defaults_cp = self._layers
        env_key = f"WDLPARSER__{section.upper()}__{key.upper()}"
        if overrides_cp.has_option(section, key):
            ans = overrides_cp.get(section, key)
        elif env_key in os.environ:
            ans = os.environ[env_key]
        elif file_cp.has_option(section, key):
            ans = file_cp.get(section, key)
        elif defaults_cp.has_option(section, key):
            ans = defaults_cp.get(section, key)
        elif any(cp.has_section(section) for cp in self._layers):
            raise ConfigMissing(f"missing config option [{section}] {key}")
        else:
            raise ConfigMissing(f"missing config section [{section}]")
        return _expand_env_var(_strip(ans))

    def __getitem__(self, section: str) -> Section:
        return Section(self, section)

    def get_int(self, section: str, key: str) -> int:
        ans = self.get(section, key)
        try:
            return int(ans)
        except ValueError:
            self._logger.debug(
                _("failed to parse configuration option", section=section, key=key, value=ans)
            )
            raise ValueError(f"configuration option [{section}] {key} should be int")

    def get_all(self) -> Dict[str, Dict[str, str]]:
        """Effective values of all options known from any source except the environment"""
        ans: Dict[str, Dict[str, str]] = {}
        for cp in self._layers:
            for section in cp.sections():
                for key in cp.options(section):
                    ans.setdefault(section, {})[key] = self.get(section, key)
        return ans

    def log_all(self) -> None:
        """
        Write a debug log message with all options
        """
        self._logger.debug(_("configuration", **self.get_all()))


def _strip(value: str) -> str:
    ans = value.strip()
    if len(ans) >= 2 and ans[0] == ans[-1] and ans[0] in ("'", '"'):
        ans = ans[1:-1]
    return ans


def _expand_env_var(env_var: str) -> str:
    """
    Expands (potentially nested) env vars by repeatedly applying
    `expandvars` and `expanduser` until interpolation stops having
    any effect.
    """
    interpolated = os.path.expanduser(os.path.expandvars(str(env_var)))
    if interpolated == env_var:
        return interpolated
    return _expand_env_var(interpolated)
