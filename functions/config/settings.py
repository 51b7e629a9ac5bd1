"""ClearDesk configuration settings.

Loads configuration from environment variables with sensible defaults.
"""

import os
from typing import Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load .env file for non-secret configuration (emulator hosts, table names, etc.)
load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    # Firebase Configuration
    firebase_project_id: Optional[str] = field(default_factory=lambda: os.getenv("FIREBASE_PROJECT_ID"))
    use_firebase_emulators: bool = field(default_factory=lambda: _env_flag("USE_FIREBASE_EMULATORS") or _env_flag("FUNCTIONS_EMULATOR"))
    region: str = field(default_factory=lambda: os.getenv("FUNCTIONS_REGION", "us-central1"))

    # Logical tables (one Firestore collection each)
    blueprints_table: str = field(default_factory=lambda: os.getenv("BLUEPRINTS_TABLE", "clear-desk-blueprints"))
    projects_table: str = field(default_factory=lambda: os.getenv("PROJECTS_TABLE", "clear-desk-projects"))
    companies_table: str = field(default_factory=lambda: os.getenv("COMPANIES_TABLE", "clear-desk-companies"))
    estimates_table: str = field(default_factory=lambda: os.getenv("ESTIMATES_TABLE", "clear-desk-estimates"))
    takeoffs_table: str = field(default_factory=lambda: os.getenv("MATERIALS_TAKEOFFS_TABLE", "clear-desk-materials-takeoffs"))
    timeline_events_table: str = field(default_factory=lambda: os.getenv("TIMELINE_EVENTS_TABLE", "clear-desk-timeline-events"))

    # Catalog collections
    assemblies_collection: str = field(default_factory=lambda: os.getenv("ASSEMBLIES_COLLECTION", "assemblies"))
    materials_collection: str = field(default_factory=lambda: os.getenv("MATERIALS_COLLECTION", "materials"))
    templates_collection: str = field(default_factory=lambda: os.getenv("BLUEPRINT_TEMPLATES_COLLECTION", "blueprintTemplates"))
    permit_mappings_collection: str = field(default_factory=lambda: os.getenv("PERMIT_MAPPINGS_COLLECTION", "permitMappings"))

    # Storage
    files_bucket: Optional[str] = field(default_factory=lambda: os.getenv("FILES_BUCKET"))
    pdf_max_file_size: int = field(default_factory=lambda: int(os.getenv("PDF_MAX_FILE_SIZE", str(50 * 1024 * 1024))))

    # Pricing defaults applied when company settings omit a value
    default_hourly_rate: float = field(default_factory=lambda: float(os.getenv("DEFAULT_HOURLY_RATE", "85")))
    default_overhead_percentage: float = field(default_factory=lambda: float(os.getenv("DEFAULT_OVERHEAD_PERCENTAGE", "15")))
    default_profit_percentage: float = field(default_factory=lambda: float(os.getenv("DEFAULT_PROFIT_PERCENTAGE", "10")))

    # Timeline prediction
    default_project_duration_days: int = field(default_factory=lambda: int(os.getenv("DEFAULT_PROJECT_DURATION_DAYS", "90")))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    def validate(self) -> None:
        """Validate required settings are present.

        Raises:
            ValueError: If required settings are missing.
        """
        if not self.firebase_project_id and not self.use_firebase_emulators:
            raise ValueError("FIREBASE_PROJECT_ID is required in production")

    @property
    def is_emulator_mode(self) -> bool:
        """Check if running in emulator mode."""
        return self.use_firebase_emulators


# Singleton settings instance
settings = Settings()
