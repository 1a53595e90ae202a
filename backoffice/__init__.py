"""Back-office query coordination core and Streamlit pages."""

__version__ = "0.1.0"
