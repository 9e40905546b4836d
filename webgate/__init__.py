"""Web application protected by a request-time session gate."""
