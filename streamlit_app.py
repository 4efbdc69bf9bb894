"""Main entry point for Streamlit app."""

import sys
from pathlib import Path

# Make the package importable without installation
sys.path.insert(0, str(Path(__file__).parent))

from cfd_journal.ui import app  # noqa: E402

if __name__ == "__main__":
    app.init_session_state()
    app.main_app()
