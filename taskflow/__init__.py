"""TaskFlow backend: task-tracking API instrumented with metrics, logs and traces."""
