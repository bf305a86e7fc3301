#!/usr/bin/env python3
# main.py
"""

Pipeline orchestrator for the Olist e-commerce sales analytics database.
Loads the five source files into the database and exports the three
business reports.

🚀 Usage Examples
Load then report (default):

python main.py

With a config file:

python main.py config.json

Specific step:

python main.py load      # Load source files into empty tables

python main.py clear     # Empty all tables

python main.py reload    # Clear, then load

python main.py report    # Export the analytics reports

python main.py config.json reload

"""

import sys
import logging
import os
import json
from typing import Dict, List, Optional, Tuple
from datetime import datetime
from dataclasses import dataclass, asdict

from config.config import cfg
from src.analytics.report_writer import export_all_reports
from src.errors import AnalyticsError
from src.loaders.data_loader import DataLoader, default_sources
from src.loaders.load_report import LoadReport
from src.models.database import Database
from src.models.entities import EntityKind

COMMANDS = ("load", "clear", "reload", "report", "full")


@dataclass
class PipelineConfig:
    """Configuration class for the analytics pipeline."""

    # Database settings
    db_url: str = cfg.database_url

    # Source files (entity kind -> path); None = DATA_DIR + default file names
    data_dir: str = cfg.data_dir
    source_files: Optional[Dict[str, str]] = None
    delimiter: str = cfg.csv_delimiter
    batch_size: int = cfg.load_batch_size

    # Reports
    top_n: int = cfg.top_n
    output_dir: str = cfg.output_dir

    # Logging configuration
    log_level: str = cfg.log_level
    log_to_file: bool = True
    log_file: str = "pipeline.log"

    def __post_init__(self):
        """Initialize default values after dataclass creation."""
        if self.source_files is None:
            self.source_files = {
                kind.value: path for kind, path in default_sources(self.data_dir).items()
            }

        self.log_file = f"pipeline_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

    def sources(self) -> Dict[EntityKind, str]:
        return {EntityKind(kind): path for kind, path in self.source_files.items()}

    def save_to_file(self, filepath: str = None):
        """Save configuration to JSON file."""
        if filepath is None:
            os.makedirs("config", exist_ok=True)
            filepath = "config/pipeline_configs.json"

        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(filepath, "w") as f:
            json.dump(asdict(self), f, indent=2, default=str)

    @classmethod
    def load_from_file(cls, filepath: str) -> "PipelineConfig":
        """Load configuration from JSON file."""
        with open(filepath, "r") as f:
            data = json.load(f)
        return cls(**data)


class PipelineLogger:
    """Logging setup for the pipeline."""

    # handlers this class attached to the root logger, replaced on re-setup
    _installed: List[logging.Handler] = []

    def __init__(self, config: PipelineConfig):
        self.config = config
        self.logger = self._setup_logger()

    def _setup_logger(self) -> logging.Logger:
        """Attach file and console handlers to the root logger."""
        logger = logging.getLogger()
        logger.setLevel(getattr(logging, self.config.log_level.upper()))

        # Drop handlers from a previous setup, keep everyone else's
        for handler in PipelineLogger._installed:
            logger.removeHandler(handler)
            handler.close()
        PipelineLogger._installed = []

        detailed_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        simple_formatter = logging.Formatter(
            "%(asctime)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S"
        )

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(simple_formatter)
        console_handler.setLevel(logging.INFO)
        logger.addHandler(console_handler)
        PipelineLogger._installed.append(console_handler)

        if self.config.log_to_file:
            log_dir = "logs/pipeline_logs"
            os.makedirs(log_dir, exist_ok=True)

            log_file_path = os.path.join(log_dir, self.config.log_file)
            file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
            file_handler.setFormatter(detailed_formatter)
            file_handler.setLevel(logging.DEBUG)
            logger.addHandler(file_handler)
            PipelineLogger._installed.append(file_handler)

        return logging.getLogger("pipeline")

    def get_logger(self) -> logging.Logger:
        """Get the configured logger instance."""
        return self.logger


class AnalyticsPipeline:
    """Runs load, clear and report steps against one database handle."""

    def __init__(self, config: PipelineConfig, database: Optional[Database] = None):
        self.config = config
        self.logger = PipelineLogger(config).get_logger()
        self.database = database or Database(config.db_url)
        self.last_report: Optional[LoadReport] = None

    def run_load(self) -> bool:
        """Load all configured source files; True when no file failed."""
        self.logger.info("Loading source files into the database...")
        loader = DataLoader(self.database, batch_size=self.config.batch_size)

        try:
            report = loader.load_all(self.config.sources(), delimiter=self.config.delimiter)
        except AnalyticsError as e:
            self.logger.error(f"❌ Load refused: {e}")
            return False

        self.last_report = report
        self._log_load_report(report)
        path = report.save_to_file()
        self.logger.info(f"📄 Load report saved to: {path}")
        return not report.has_failures

    def run_clear(self) -> bool:
        self.logger.info("Clearing all tables...")
        try:
            self.database.clear_all()
        except AnalyticsError as e:
            self.logger.error(f"❌ {e}")
            return False
        self.logger.info("✓ All tables cleared")
        return True

    def run_reload(self) -> bool:
        return self.run_clear() and self.run_load()

    def run_reports(self) -> bool:
        self.logger.info("Exporting analytics reports...")
        try:
            written = export_all_reports(
                self.database,
                output_dir=self.config.output_dir,
                top_n=self.config.top_n,
                delimiter=self.config.delimiter,
            )
        except AnalyticsError as e:
            self.logger.error(f"❌ Reports failed: {e}")
            return False

        for name, path in written.items():
            self.logger.info(f"✓ {name} -> {path}")
        return True

    def run(self, command: str) -> bool:
        self.database.open()
        try:
            if command == "load":
                return self.run_load()
            if command == "clear":
                return self.run_clear()
            if command == "reload":
                return self.run_reload()
            if command == "report":
                return self.run_reports()
            return self.run_load() and self.run_reports()
        finally:
            self.database.close()

    def _log_load_report(self, report: LoadReport):
        self.logger.info("=" * 60)
        self.logger.info("📊 LOAD REPORT")
        self.logger.info("=" * 60)

        for result in report.ordered_results():
            self.logger.info(
                f"{result.kind.value:<15} {result.status.value:<8} "
                f"inserted={result.inserted} rejected={result.rejected_count} "
                f"skipped={result.skipped}"
            )
            if result.error:
                self.logger.error(f"   • {result.error}")
            for error_kind, count in result.rejections_by_kind().items():
                self.logger.warning(f"   • {error_kind}: {count}")

        if report.duration is not None:
            self.logger.info(f"⏱️  Total Duration: {report.duration:.2f} seconds")


def parse_args(argv) -> Tuple[PipelineConfig, str]:
    """Read an optional JSON config path and an optional command from argv."""
    config = PipelineConfig()
    command = "full"

    for arg in argv:
        if arg.endswith(".json"):
            try:
                config = PipelineConfig.load_from_file(arg)
                print(f"✓ Loaded configuration from {arg}")
            except (OSError, ValueError, TypeError) as e:
                print(f"⚠ Failed to load config file {arg}: {e}")
                print("Using default configuration...")
        elif arg in COMMANDS:
            command = arg
        else:
            raise SystemExit(f"Unknown argument {arg!r}; expected one of {COMMANDS}")

    return config, command


def main():
    """Main entry point."""
    print("🚀 Olist Sales Analytics Pipeline")
    print("=" * 50)

    config, command = parse_args(sys.argv[1:])
    pipeline = AnalyticsPipeline(config)
    pipeline.logger.info(f"🎯 Running {command.upper()}")

    success = pipeline.run(command)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
