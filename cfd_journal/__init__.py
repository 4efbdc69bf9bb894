"""CFD trading journal: position accounting, analytics and a Streamlit UI."""

__version__ = "0.1.0"
