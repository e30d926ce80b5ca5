"""
Configuration management for the Augur prediction engine.
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator


class BufferConfig(BaseModel):
    """Per-symbol history capacity."""
    
    max_ticks: int = Field(default=1000, ge=10, le=100_000)
    max_candles: int = Field(default=1000, ge=10, le=100_000)


class InferenceConfig(BaseModel):
    """External inference service configuration."""
    
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    model: str = Field(default="default")
    timeout_seconds: float = Field(default=30.0, gt=0, le=120.0)
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2000, ge=1)
    
    @property
    def enabled(self) -> bool:
        """Whether an endpoint has been configured."""
        return bool(self.endpoint)


class EngineConfig(BaseModel):
    """Prediction pipeline parameters."""
    
    risk_profile: str = Field(default="conservative")
    allow_unknown_symbols: bool = Field(default=True)
    mtf_timeframes: List[int] = Field(default=[1, 5, 15, 60, 240, 1440])
    min_candles: int = Field(default=1, ge=1)
    
    @field_validator('mtf_timeframes')
    @classmethod
    def validate_timeframes(cls, v: List[int]) -> List[int]:
        """Timeframes must be distinct positive minute counts."""
        if not v or any(minutes <= 0 for minutes in v):
            raise ValueError("mtf_timeframes must be a non-empty list of positive minutes")
        if len(set(v)) != len(v):
            raise ValueError(f"mtf_timeframes contains duplicates: {v}")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration; no file_path means console only."""
    
    level: str = Field(default="INFO")
    file_path: Optional[str] = None
    max_size: str = Field(default="10MB")
    backup_count: int = Field(default=5)


class Config(BaseModel):
    """Main configuration class."""
    
    buffer: BufferConfig = Field(default_factory=BufferConfig)
    inference: InferenceConfig = Field(default_factory=InferenceConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    
    @classmethod
    def load_from_env(cls, env_file: Optional[str] = None) -> "Config":
        """Load configuration from environment variables."""
        if env_file:
            load_dotenv(env_file)
        else:
            env_path = Path(".env")
            if env_path.exists():
                load_dotenv(env_path)
        
        buffer = BufferConfig(
            max_ticks=int(os.getenv("AUGUR_MAX_TICKS", "1000")),
            max_candles=int(os.getenv("AUGUR_MAX_CANDLES", "1000"))
        )
        
        inference = InferenceConfig(
            endpoint=os.getenv("AUGUR_INFERENCE_ENDPOINT") or None,
            api_key=os.getenv("AUGUR_INFERENCE_API_KEY") or None,
            model=os.getenv("AUGUR_INFERENCE_MODEL", "default"),
            timeout_seconds=float(os.getenv("AUGUR_INFERENCE_TIMEOUT", "30")),
            temperature=float(os.getenv("AUGUR_INFERENCE_TEMPERATURE", "0.1")),
            max_tokens=int(os.getenv("AUGUR_INFERENCE_MAX_TOKENS", "2000"))
        )
        
        timeframes = os.getenv("AUGUR_MTF_TIMEFRAMES", "1,5,15,60,240,1440").split(",")
        engine = EngineConfig(
            risk_profile=os.getenv("AUGUR_RISK_PROFILE", "conservative"),
            allow_unknown_symbols=os.getenv("AUGUR_ALLOW_UNKNOWN_SYMBOLS", "true").lower() == "true",
            mtf_timeframes=[int(t.strip()) for t in timeframes if t.strip()],
            min_candles=int(os.getenv("AUGUR_MIN_CANDLES", "1"))
        )
        
        logging = LoggingConfig(
            level=os.getenv("AUGUR_LOG_LEVEL", "INFO"),
            file_path=os.getenv("AUGUR_LOG_FILE", "./logs/augur.log") or None,
            max_size=os.getenv("AUGUR_LOG_MAX_SIZE", "10MB"),
            backup_count=int(os.getenv("AUGUR_LOG_BACKUP_COUNT", "5"))
        )
        
        return cls(
            buffer=buffer,
            inference=inference,
            engine=engine,
            logging=logging
        )
    
    def validate_inference(self) -> bool:
        """Check if an external inference endpoint is configured."""
        return self.inference.enabled
