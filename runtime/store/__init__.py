"""
Storage abstractions for the content record runtime.

Includes:
- NameRegistry: the shared dictionary of skapp names owning a log

Index and page persistence lives with the log engine in core/log/.
"""
