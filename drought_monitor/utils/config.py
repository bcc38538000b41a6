"""Configuration loader for the drought monitor."""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


class GEEConfig(BaseModel):
    project_id: Optional[str] = None
    service_account_key: Optional[str] = None
    modis_collection: str = "MODIS/061/MOD13Q1"
    cropland_collection: str = "projects/sat-io/open-datasets/GFSAD/GCEP30"
    boundary_collection: str = "USDOS/LSIB_SIMPLE/2017"
    download_scale: int = 250


class DataConfig(BaseModel):
    scenes_dir: str = "data/modis"
    cropland_dir: str = "data/cropland"
    region_file: str = "data/boundaries/lsib_simple.gpkg"
    region_name_field: str = "country_na"
    region_name: str = "Pakistan"
    region_label: str = "Pakistan"


class AnalysisConfig(BaseModel):
    start_year: int = 2010
    end_year: int = 2022
    ndvi_scale_factor: float = 10000.0
    qa_from_bit: int = 0
    qa_to_bit: int = 1
    qa_max_valid: int = 1
    cropland_class: int = 2
    max_workers: int = 4


class ExportConfig(BaseModel):
    scale: float = 250.0
    max_pixels: float = 1e9
    output_dir: str = "data/exports"
    max_workers: int = 2
    max_jobs: int = 100


class APIConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = True
    cors_origins: list[str] = ["http://localhost:8501"]


class LoggingConfig(BaseModel):
    level: str = "DEBUG"
    format: str = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"
    rotation: str = "10 MB"
    retention: str = "7 days"


class AppConfig(BaseModel):
    name: str = "drought_monitor"
    version: str = "0.1.0"
    environment: str = "development"
    debug: bool = True


class Settings(BaseModel):
    app: AppConfig = AppConfig()
    logging: LoggingConfig = LoggingConfig()
    gee: GEEConfig = GEEConfig()
    data: DataConfig = DataConfig()
    analysis: AnalysisConfig = AnalysisConfig()
    export: ExportConfig = ExportConfig()
    api: APIConfig = APIConfig()


def get_project_root() -> Path:
    return Path(__file__).parent.parent.parent


def load_yaml_config(env: str = "development") -> dict[str, Any]:
    config_path = get_project_root() / "config" / "environments" / f"{env}.yaml"
    if not config_path.exists():
        return {}
    with open(config_path, "r") as f:
        return yaml.safe_load(f) or {}


def get_settings(env: Optional[str] = None) -> Settings:
    env = env or os.getenv("APP_ENV", "development")
    yaml_config = load_yaml_config(env)

    # Override with env vars
    if os.getenv("GEE_PROJECT_ID"):
        yaml_config.setdefault("gee", {})["project_id"] = os.getenv("GEE_PROJECT_ID")
    if os.getenv("GEE_SERVICE_ACCOUNT_KEY"):
        yaml_config.setdefault("gee", {})["service_account_key"] = os.getenv("GEE_SERVICE_ACCOUNT_KEY")
    if os.getenv("DROUGHT_DATA_DIR"):
        data_dir = Path(os.getenv("DROUGHT_DATA_DIR"))
        data = yaml_config.setdefault("data", {})
        data["scenes_dir"] = str(data_dir / "modis")
        data["cropland_dir"] = str(data_dir / "cropland")
    if os.getenv("DROUGHT_EXPORT_DIR"):
        yaml_config.setdefault("export", {})["output_dir"] = os.getenv("DROUGHT_EXPORT_DIR")
    if os.getenv("DROUGHT_REGION_NAME"):
        data = yaml_config.setdefault("data", {})
        data["region_name"] = os.getenv("DROUGHT_REGION_NAME")
        data["region_label"] = os.getenv("DROUGHT_REGION_NAME")

    return Settings(**yaml_config) if yaml_config else Settings()


settings = get_settings()
