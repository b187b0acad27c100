"""Wire format, streaming envelope and response decoding."""
