# Make src/amazon_invoices importable for pytest without installing the project.
from pathlib import Path
import sys

SRC = Path(__file__).resolve().parent / "src"
if SRC.is_dir() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
