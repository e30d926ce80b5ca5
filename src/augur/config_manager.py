"""
Centralized Configuration Manager

Manages the JSON tuning files in the config/ directory and provides a
unified interface for reading engine thresholds and risk profiles
throughout the prediction pipeline. Every lookup carries a code default,
so a missing file only means "use the built-in values".
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional


logger = logging.getLogger(__name__)


@dataclass
class ConfigPaths:
    """Configuration file paths."""
    
    # Project root, assuming this file lives in src/augur/
    project_root: Path = field(default_factory=lambda: Path(__file__).parent.parent.parent)
    config_dir: Optional[Path] = None
    
    def __post_init__(self):
        if self.config_dir is None:
            self.config_dir = self.project_root / "config"
    
    @property
    def engine_config(self) -> Path:
        """Indicator, pattern and ensemble thresholds."""
        return self.config_dir / "engine.json"
    
    @property
    def risk_profiles_config(self) -> Path:
        """Named risk profiles."""
        return self.config_dir / "risk_profiles.json"
    
    def files(self) -> Dict[str, Path]:
        return {
            'engine': self.engine_config,
            'risk_profiles': self.risk_profiles_config,
        }


class ConfigManager:
    """
    Centralized configuration manager.
    
    Provides unified access to engine tuning parameters and risk
    profile definitions.
    """
    
    def __init__(self, config_dir: Optional[Path] = None):
        """
        Initialize configuration manager.
        
        Args:
            config_dir: Optional custom config directory path
        """
        self.paths = ConfigPaths(config_dir=Path(config_dir) if config_dir else None)
        self._configs: Dict[str, Dict[str, Any]] = {}
        self._load_all_configs()
    
    def _load_all_configs(self) -> None:
        """Load all configuration files."""
        for config_name, config_path in self.paths.files().items():
            self._configs[config_name] = self._load_config_file(config_path)
            logger.debug(f"Loaded {config_name} configuration from {config_path}")
    
    def _load_config_file(self, path: Path) -> Dict[str, Any]:
        """Load a JSON configuration file."""
        if not path.exists():
            logger.debug(f"Configuration file not found, using defaults: {path}")
            return {}
        
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in config file {path}: {e}")
            return {}
        except OSError as e:
            logger.error(f"Error loading config file {path}: {e}")
            return {}
        
        if not isinstance(data, dict):
            logger.error(f"Config file {path} must contain a JSON object")
            return {}
        return data
    
    def get(self, config_type: str, *keys: str, default: Any = None) -> Any:
        """
        Get configuration value by nested keys.
        
        Args:
            config_type: Configuration type ('engine', 'risk_profiles')
            *keys: Configuration keys (e.g., 'ensemble', 'external_weight')
            default: Default value if key not found
            
        Returns:
            Configuration value or default
            
        Example:
            config.get('engine', 'ensemble', 'agreement_bonus')
        """
        if config_type not in self._configs:
            logger.warning(f"Unknown config type: {config_type}")
            return default
        
        value = self._configs[config_type]
        
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        
        return value
    
    def get_bool(self, config_type: str, *keys: str, default: bool = False) -> bool:
        """Get configuration value as boolean."""
        value = self.get(config_type, *keys, default=default)
        
        if isinstance(value, bool):
            return value
        elif isinstance(value, str):
            return value.lower() in ('true', '1', 'yes', 'on')
        else:
            return bool(value) if value is not None else default
    
    def get_int(self, config_type: str, *keys: str, default: int = 0) -> int:
        """Get configuration value as integer."""
        value = self.get(config_type, *keys, default=default)
        
        try:
            return int(value)
        except (ValueError, TypeError):
            logger.warning(f"Could not convert {value} to int, using default {default}")
            return default
    
    def get_float(self, config_type: str, *keys: str, default: float = 0.0) -> float:
        """Get configuration value as float."""
        value = self.get(config_type, *keys, default=default)
        
        try:
            return float(value)
        except (ValueError, TypeError):
            logger.warning(f"Could not convert {value} to float, using default {default}")
            return default
    
    def get_section(self, config_type: str, *keys: str) -> Dict[str, Any]:
        """Get an entire configuration section."""
        value = self.get(config_type, *keys, default={})
        
        if isinstance(value, dict):
            return value
        logger.warning(f"Expected dict but got {type(value)}, returning empty dict")
        return {}
    
    def set(self, config_type: str, keys: list, value: Any) -> None:
        """
        Set configuration value (runtime only, not persisted).
        
        Args:
            config_type: Configuration type
            keys: List of keys for nested access
            value: Value to set
        """
        config = self._configs.setdefault(config_type, {})
        
        for key in keys[:-1]:
            config = config.setdefault(key, {})
        
        config[keys[-1]] = value
        logger.debug(f"Set {config_type}.{'.'.join(keys)} = {value}")
    
    def reload(self, config_type: Optional[str] = None) -> None:
        """
        Reload configuration files.
        
        Args:
            config_type: Specific config type to reload, or None for all
        """
        files = self.paths.files()
        if config_type:
            if config_type not in files:
                logger.warning(f"Unknown config type: {config_type}")
                return
            self._configs[config_type] = self._load_config_file(files[config_type])
        else:
            self._load_all_configs()
        
        logger.info(f"Reloaded configuration: {config_type or 'all'}")
    
    def validate_config(self, config_type: str) -> Dict[str, list]:
        """
        Validate configuration and return any issues.
        
        Args:
            config_type: Configuration type to validate
            
        Returns:
            Dictionary with 'errors' and 'warnings' lists
        """
        errors = []
        warnings = []
        
        if config_type not in self._configs:
            errors.append(f"Configuration type '{config_type}' not loaded")
            return {'errors': errors, 'warnings': warnings}
        
        config = self._configs[config_type]
        
        if config_type == 'risk_profiles':
            for name, profile in config.items():
                if not isinstance(profile, dict):
                    errors.append(f"Risk profile '{name}' must be an object")
                    continue
                low = profile.get('min_confidence', 0.5)
                high = profile.get('max_confidence', 0.85)
                if not (0 < low < high < 1):
                    errors.append(f"{name}: confidence band must satisfy 0 < min < max < 1, got [{low}, {high}]")
                if profile.get('min_risk_reward', 1.5) < 1.0:
                    errors.append(f"{name}: min_risk_reward must be >= 1.0")
        
        elif config_type == 'engine':
            weights = self.get('engine', 'multi_timeframe', 'weights', default=None)
            if isinstance(weights, dict):
                total = sum(float(w) for w in weights.values())
                if abs(total - 1.0) > 1e-6:
                    warnings.append(f"multi_timeframe.weights sum to {total:.3f}; they will be normalized")
            for section in ('indicators', 'patterns', 'ensemble'):
                if section not in config:
                    warnings.append(f"Missing section '{section}', built-in defaults apply")
        
        return {'errors': errors, 'warnings': warnings}


# Global configuration manager instance
_config_manager = None


def get_config_manager() -> ConfigManager:
    """Get the global configuration manager instance."""
    global _config_manager
    
    if _config_manager is None:
        _config_manager = ConfigManager()
    
    return _config_manager


def reset_config_manager(config_dir: Optional[Path] = None) -> ConfigManager:
    """Replace the global instance, e.g. to point at another config directory."""
    global _config_manager
    _config_manager = ConfigManager(config_dir)
    return _config_manager
