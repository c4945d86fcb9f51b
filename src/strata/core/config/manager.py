"""
Strata configuration management.
"""
from __future__ import annotations

import copy
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import yaml

from strata.core.exceptions import ConfigurationError
from strata.core.utils.io import read_text
from strata.core.utils.merge import deep_merge, merge_by_key
from strata.core.utils.paths import get_user_config_dir, resolve_workspace_root
from strata.data import get_data_path

from .model import ConfigLoadResult, ConfigValidationError, LayerSpec, StrataConfig
from .validation import invalid_layer_indexes, validate_config

logger = logging.getLogger(__name__)

ENV_PREFIX = "STRATA_"
CONFIG_PATH_ENV = "STRATA_CONFIG_PATH"
COMPANY_URL_ENV = "STRATA_COMPANY_KNOWLEDGE_URL"
COMPANY_BRANCH_ENV = "STRATA_COMPANY_KNOWLEDGE_BRANCH"
COMPANY_TOKEN_ENV = "STRATA_COMPANY_KNOWLEDGE_TOKEN_ENV"
COMPANY_LAYER_NAME = "company"
COMPANY_LAYER_PRIORITY = 50

CONFIG_FILE_NAMES = ("config.yaml", "config.yml", "config.json")
PROJECT_FILE_NAMES = ("strata.yaml", "strata.yml", "strata.json")

_Segment = Union[str, int]


class ConfigManager:
    """Load, merge, and validate Strata configuration.

    Configuration sources (lowest to highest priority):
    1. Bundled defaults: strata.data/config/defaults.yaml
    2. User config: first of $STRATA_HOME/config.{yaml,yml,json}
    3. Project config: first of <workspace>/strata.{yaml,yml,json},
       <workspace>/.strata/config.{yaml,yml,json}
    4. Explicit file: $STRATA_CONFIG_PATH
    5. Quick company layer: STRATA_COMPANY_KNOWLEDGE_{URL,BRANCH,TOKEN_ENV}
    6. Environment overrides: STRATA_<section>__<key>[__<key>...]

    ``layers`` lists merge by layer name; every other section deep-merges.
    A malformed file is reported as a validation error and skipped.
    """

    def __init__(self, workspace_root: Optional[Path] = None) -> None:
        self.workspace_root = resolve_workspace_root(workspace_root)
        self.defaults_file = get_data_path("config", "defaults.yaml")
        self.user_config_dir = get_user_config_dir(create=False)

    # ---------- discovery ----------

    @staticmethod
    def _first_existing(candidates: List[Path]) -> Optional[Path]:
        for path in candidates:
            if path.is_file():
                return path
        return None

    def user_config_file(self) -> Optional[Path]:
        return self._first_existing([self.user_config_dir / n for n in CONFIG_FILE_NAMES])

    def project_config_file(self) -> Optional[Path]:
        candidates = [self.workspace_root / n for n in PROJECT_FILE_NAMES]
        candidates += [self.workspace_root / ".strata" / n for n in CONFIG_FILE_NAMES]
        return self._first_existing(candidates)

    def explicit_config_file(self) -> Optional[Path]:
        raw = os.environ.get(CONFIG_PATH_ENV, "").strip()
        if not raw:
            return None
        p = Path(raw).expanduser()
        return p if p.is_absolute() else self.workspace_root / p

    def config_files(self) -> List[Path]:
        """Config files that take part in a load, lowest priority first."""
        files = [self.defaults_file]
        for path in (self.user_config_file(), self.project_config_file(), self.explicit_config_file()):
            if path is not None:
                files.append(path)
        return files

    # ---------- reading & merging ----------

    def read_file(self, path: Path) -> Dict[str, Any]:
        """Read one YAML or JSON config file.

        Raises:
            ConfigurationError: if the file is missing, malformed, or not a mapping
        """
        try:
            text = read_text(path)
        except OSError as exc:
            raise ConfigurationError(f"Cannot read config file {path}: {exc}", context={"path": str(path)}) from exc
        try:
            data = json.loads(text) if path.suffix.lower() == ".json" else yaml.safe_load(text)
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"Malformed config file {path}: {exc}", context={"path": str(path)}) from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Config file {path} must contain a mapping, got {type(data).__name__}",
                context={"path": str(path)},
            )
        return data

    @staticmethod
    def merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep-merge ``override`` into ``base``; ``layers`` merge by name."""
        layers = None
        if isinstance(base.get("layers"), list) and isinstance(override.get("layers"), list):
            layers = merge_by_key(base["layers"], override["layers"], key="name")
        merged = deep_merge(base, override)
        if layers is not None:
            merged["layers"] = layers
        return merged

    # ---------- environment ----------

    def company_layer_from_env(self) -> Optional[Dict[str, Any]]:
        url = os.environ.get(COMPANY_URL_ENV, "").strip()
        if not url:
            return None
        layer: Dict[str, Any] = {
            "name": COMPANY_LAYER_NAME,
            "priority": COMPANY_LAYER_PRIORITY,
            "source": {
                "type": "git",
                "url": url,
                "branch": os.environ.get(COMPANY_BRANCH_ENV, "").strip() or "main",
            },
        }
        token_env = os.environ.get(COMPANY_TOKEN_ENV, "").strip()
        if token_env:
            layer["auth"] = {"type": "token", "token_env_var": token_env}
        return layer

    def _as_bool(self, v: str) -> Optional[bool]:
        low = v.strip().lower()
        if low in {"true", "false"}:
            return low == "true"
        return None

    def _as_int(self, v: str) -> Optional[int]:
        if re.fullmatch(r"[-+]?\d+", v.strip() or " "):
            return int(v)
        return None

    def _as_float(self, v: str) -> Optional[float]:
        s = v.strip()
        if re.fullmatch(r"[-+]?\d*\.\d+", s) or re.fullmatch(r"[-+]?\d+\.\d*", s):
            return float(s)
        return None

    def _as_json(self, v: str) -> Optional[Any]:
        s = v.strip()
        if (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]")):
            try:
                return json.loads(s)
            except json.JSONDecodeError:
                return None
        return None

    def _coerce_type(self, value: str) -> Any:
        for caster in (self._as_bool, self._as_int, self._as_float, self._as_json):
            result = caster(value)
            if result is not None:
                return result
        if value.strip().lower() in {"null", "none"}:
            return None
        return value.strip()

    def _parse_env_key(self, raw: str) -> List[_Segment]:
        segs = raw.split("__")
        processed: List[_Segment] = []
        for seg in segs:
            if seg == "":
                raise ValueError(f"Malformed {ENV_PREFIX}* key: empty segment in '{raw}'")
            processed.append(int(seg) if seg.isdigit() else seg)
        return processed

    def iter_env_overrides(self) -> Iterator[Tuple[str, List[_Segment], str]]:
        """Yield ``(env_name, path, raw_value)`` for nested ``STRATA_*`` keys.

        Only keys containing ``__`` are overrides; ``STRATA_HOME`` and the
        other flat ``STRATA_*`` variables are settings of their own.
        """
        for key in sorted(os.environ.keys()):
            if not key.startswith(ENV_PREFIX):
                continue
            raw = key[len(ENV_PREFIX):]
            if "__" not in raw:
                continue
            yield key, self._parse_env_key(raw), os.environ[key]

    @staticmethod
    def _lookup_key(container: Dict[str, Any], part: str) -> str:
        lower_map = {k.lower(): k for k in container.keys() if isinstance(k, str)}
        return lower_map.get(part.lower(), part.lower())

    def _set_nested(self, root: Dict[str, Any], path: List[_Segment], value: Any) -> None:
        """Assign ``value`` at ``path``, creating intermediate mappings.

        ``layers__<name>__...`` addresses the layer entry by name (creating
        it when missing); ``layers__<index>__...`` addresses it by position.
        """
        if len(path) < 2:
            raise ValueError("Override needs at least <section>__<key>")
        cur: Any = root
        rest = list(path)
        if str(rest[0]).lower() == "layers":
            layers = root.setdefault("layers", [])
            if not isinstance(layers, list):
                raise ValueError("'layers' is not a list")
            selector = rest[1]
            if isinstance(selector, int):
                if selector >= len(layers):
                    raise ValueError(f"layers[{selector}] does not exist")
                cur = layers[selector]
            else:
                cur = next(
                    (l for l in layers if isinstance(l, dict) and str(l.get("name", "")).lower() == selector.lower()),
                    None,
                )
                if cur is None:
                    cur = {"name": selector.lower()}
                    layers.append(cur)
            rest = rest[2:]
            if not rest:
                raise ValueError("Layer override needs a field name")

        for i, part in enumerate(rest):
            if isinstance(part, int):
                raise ValueError("List indexes are only supported for layers")
            if not isinstance(cur, dict):
                raise ValueError("Path traverses non-mapping value")
            key = self._lookup_key(cur, part)
            if i == len(rest) - 1:
                cur[key] = value
                return
            if not isinstance(cur.get(key), dict):
                cur[key] = {}
            cur = cur[key]

    def apply_env_overrides(self, cfg: Dict[str, Any]) -> List[ConfigValidationError]:
        problems: List[ConfigValidationError] = []
        try:
            overrides = list(self.iter_env_overrides())
        except ValueError as exc:
            return [ConfigValidationError(field="", message=str(exc), source="environment")]
        for env_name, path, raw in overrides:
            try:
                self._set_nested(cfg, path, self._coerce_type(raw))
            except ValueError as exc:
                problems.append(ConfigValidationError(field=env_name, message=str(exc), source="environment"))
        return problems

    # ---------- load ----------

    def load(self) -> ConfigLoadResult:
        """Load, merge and validate configuration (uncached).

        Never raises for bad user input: problems land in
        ``validation_errors`` and invalid layers are left out of
        ``config.layers``. Only unreadable bundled defaults raise.
        """
        cfg = self.read_file(self.defaults_file)
        defaults = copy.deepcopy(cfg)
        sources: List[str] = [str(self.defaults_file)]
        problems: List[ConfigValidationError] = []

        explicit = self.explicit_config_file()
        if explicit is not None and not explicit.is_file():
            problems.append(
                ConfigValidationError(
                    field=CONFIG_PATH_ENV,
                    message=f"Config file not found: {explicit}",
                    value=str(explicit),
                    source="environment",
                )
            )
            explicit = None

        for path in (self.user_config_file(), self.project_config_file(), explicit):
            if path is None:
                continue
            try:
                data = self.read_file(path)
            except ConfigurationError as exc:
                logger.warning("Skipping config file: %s", exc)
                problems.append(ConfigValidationError(field="", message=str(exc), source=str(path)))
                continue
            cfg = self.merge(cfg, data)
            sources.append(str(path))

        company = self.company_layer_from_env()
        if company is not None:
            cfg = self.merge(cfg, {"layers": [company]})
            sources.append(f"env:{COMPANY_URL_ENV}")

        env_problems = self.apply_env_overrides(cfg)
        problems.extend(env_problems)
        if any(k.startswith(ENV_PREFIX) and "__" in k for k in os.environ):
            sources.append("env:STRATA_*")

        errors, warnings = validate_config(cfg, workspace_root=self.workspace_root)
        errors = problems + errors

        layers = self._build_layers(cfg, errors)
        settings = self._settings_with_fallbacks(cfg, defaults, errors)

        for err in errors:
            logger.warning("Configuration error: %s", err)
        for warn in warnings:
            logger.info("Configuration warning: %s", warn)

        return ConfigLoadResult(
            config=StrataConfig(layers=tuple(layers), settings=settings, workspace_root=self.workspace_root),
            raw=cfg,
            sources=sources,
            warnings=warnings,
            validation_errors=errors,
        )

    def _build_layers(self, cfg: Dict[str, Any], errors: List[ConfigValidationError]) -> List[LayerSpec]:
        raw_layers = cfg.get("layers")
        if not isinstance(raw_layers, list):
            return []
        skip = invalid_layer_indexes(errors)
        layers: List[LayerSpec] = []
        for idx, raw in enumerate(raw_layers):
            if idx in skip or not isinstance(raw, dict):
                continue
            try:
                layers.append(LayerSpec.from_dict(raw, order=idx))
            except (KeyError, TypeError, ValueError) as exc:
                errors.append(ConfigValidationError(field=f"layers[{idx}]", message=str(exc), source=None))
        return layers

    @staticmethod
    def _settings_with_fallbacks(
        cfg: Dict[str, Any],
        defaults: Dict[str, Any],
        errors: List[ConfigValidationError],
    ) -> Dict[str, Any]:
        """Return settings where any invalid section reverts to its bundled default."""
        settings = {k: v for k, v in cfg.items() if k != "layers"}
        for err in errors:
            section = re.split(r"[.\[]", err.field, maxsplit=1)[0] if err.field else ""
            if section and section != "layers" and section in defaults:
                settings[section] = copy.deepcopy(defaults[section])
        return settings

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot-notation key (e.g. ``search.default_limit``)."""
        from .cache import get_cached_config

        current: Any = get_cached_config(self.workspace_root).raw
        for part in key.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current


def load_config(workspace_root: Optional[Path] = None) -> ConfigLoadResult:
    """Load configuration for ``workspace_root`` without caching."""
    return ConfigManager(workspace_root).load()


__all__ = [
    "ConfigManager",
    "load_config",
    "CONFIG_PATH_ENV",
    "COMPANY_URL_ENV",
    "COMPANY_BRANCH_ENV",
    "COMPANY_TOKEN_ENV",
]
