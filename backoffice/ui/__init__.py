"""Streamlit back-office UI."""
