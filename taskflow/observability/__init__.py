"""Request observability for the TaskFlow backend.

Every HTTP request is timed by `ObservabilityMiddleware`, labelled with a
normalized route, counted in a Prometheus registry and logged as one JSON line
carrying the active trace/span ids when tracing is enabled.
"""
