"""
zabbix_client — monitoring operations for TYPO3 installations.

Answers operations such as GetExtensionList for a monitoring client over MCP.
"""

__version__ = "1.0.0"
