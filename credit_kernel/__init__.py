"""
credit_kernel -- pure core of the vendor credit engine.

Typed exceptions, structured logging, the clock abstraction, monetary
helpers, document records and workflow value types.  Nothing in this
package performs I/O or imports from ``credit_engines``, ``credit_config``
or ``credit_modules``.
"""
