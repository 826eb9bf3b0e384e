"""
Edge caching package.

Provides the namespaced cache store and the strategies that serve
intercepted requests from it. Entries are written only by strategy
execution and removed only by deleting a whole namespace.
"""
