"""
Agents used by the content record runtime.

- ContentRecordAgent: binds the logs to a caller domain and exposes
  init / on_user_login / record_new_content / record_interaction
"""
