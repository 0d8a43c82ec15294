"""Monitoring operations answered by zabbix_client."""
