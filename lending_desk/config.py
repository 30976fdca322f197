import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

@dataclass
class Settings:
    # Application
    app_name: str = os.getenv("APP_NAME", "Library Lending Desk")
    log_level: str = os.getenv("LOG_LEVEL", "WARNING")

    # Data files
    data_dir: str = os.getenv("LIBRARY_DATA_DIR", "library_data")
    books_file: str = os.getenv("LIBRARY_BOOKS_FILE", "books.csv")
    members_file: str = os.getenv("LIBRARY_MEMBERS_FILE", "members.csv")
    loans_file: str = os.getenv("LIBRARY_LOANS_FILE", "loans.csv")

    # Lending rules
    loan_period_days: int = int(os.getenv("LOAN_PERIOD_DAYS", "14"))
    low_availability_threshold: int = int(os.getenv("LOW_AVAILABILITY_THRESHOLD", "1"))


settings = Settings()
