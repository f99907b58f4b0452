"""
MySQL connection used to look up table names before a dump.
"""

import logging
from typing import Optional

import mysql.connector
from mysql.connector import Error as MySQLError

from .invocation import split_address


class DatabaseConnection:
    """Manages a MySQL connection with context manager support."""

    DEFAULT_PORT = 3306
    DEFAULT_CHARSET = 'utf8mb4'

    def __init__(self, host: str, port: int, user: str, password: str):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.connection = None

    @classmethod
    def from_address(cls, address: str, user: str, password: str) -> "DatabaseConnection":
        """Create a connection for a ``host[:port]`` address."""
        host, port = split_address(address)
        return cls(
            host=host,
            port=int(port) if port else cls.DEFAULT_PORT,
            user=user,
            password=password
        )

    def __enter__(self) -> "DatabaseConnection":
        """Context manager entry - establish connection."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - close connection."""
        self.disconnect()

    def connect(self) -> None:
        """Establish database connection."""
        try:
            self.connection = mysql.connector.connect(
                host=self.host,
                port=self.port,
                user=self.user,
                password=self.password,
                charset=self.DEFAULT_CHARSET,
                use_unicode=True
            )
            logging.info(f"Connected to {self.host}:{self.port}")
        except MySQLError as e:
            logging.error(f"Failed to connect to database: {e}")
            raise

    def disconnect(self) -> None:
        """Close database connection."""
        if self.connection and self.connection.is_connected():
            self.connection.close()
            logging.debug("Database connection closed")

    def execute_query(self, query: str, params: Optional[tuple] = None) -> list[tuple]:
        """Execute a query and return results."""
        cursor = self.connection.cursor()
        try:
            cursor.execute(query, params)
            return cursor.fetchall()
        finally:
            cursor.close()

    def get_tables(self, database: str) -> list[str]:
        """Get list of all tables in a database."""
        quoted = database.replace('`', '``')
        results = self.execute_query(f"SHOW TABLES FROM `{quoted}`")
        return [row[0] for row in results]
