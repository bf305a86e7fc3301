#!/usr/bin/env python3
## config/config.py
"""Handles project configuration and environment variables."""
import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


@dataclass
class Config:
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./data/olist_analytics.db")

    # Source files
    data_dir: str = os.getenv("DATA_DIR", "./data/raw")
    csv_delimiter: str = os.getenv("CSV_DELIMITER", ";")
    csv_encoding: str = os.getenv("CSV_ENCODING", "utf-8")

    # Loading
    load_batch_size: int = int(os.getenv("LOAD_BATCH_SIZE", 1000))

    # Reports
    output_dir: str = os.getenv("OUTPUT_DIR", "./data/reports")
    report_timezone: str = os.getenv("REPORT_TIMEZONE", "America/Sao_Paulo")
    top_n: int = int(os.getenv("REPORT_TOP_N", 10))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Default file name per entity kind
    customers_file: str = "olist_customers_dataset.csv"
    products_file: str = "olist_products_dataset.csv"
    orders_file: str = "olist_orders_dataset.csv"
    order_payments_file: str = "olist_order_payments_dataset.csv"
    order_items_file: str = "olist_order_items_dataset.csv"


cfg = Config()
