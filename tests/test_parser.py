"""
Unit tests for parser.py
"""

import io
import logging
import threading

import pytest

from dumpstream.exceptions import ParseError, ProcessError
from dumpstream.parser import ParseHandler, RowCountHandler, iter_statements, parse
from dumpstream.pipe import BytePipe

DUMP = b"""\
CHANGE MASTER TO MASTER_LOG_FILE='mysql-bin.000042', MASTER_LOG_POS=1337;
SET @@GLOBAL.GTID_PURGED=/*!80000 '+'*/ '3e11fa47-71ca-11e1-9e33-c80aa9429562:1-5,
4e11fa47-71ca-11e1-9e33-c80aa9429562:1-9';

CREATE DATABASE /*!32312 IF NOT EXISTS*/ `shop` /*!40100 DEFAULT CHARACTER SET utf8 */;

USE `shop`;
/*!40101 SET @saved_cs_client     = @@character_set_client */;
/*!40101 SET character_set_client = utf8 */;
CREATE TABLE `orders` (
  `id` int(11) NOT NULL,
  `note` varchar(255) DEFAULT NULL,
  PRIMARY KEY (`id`)
);
/*!40101 SET character_set_client = @saved_cs_client */;
INSERT INTO `orders` VALUES (1,'first;\\nline');
INSERT INTO `orders` VALUES (2,NULL);
"""


class RecordingHandler(ParseHandler):
    """Records every event in order."""

    def __init__(self):
        self.events = []

    def binlog(self, name, pos):
        self.events.append(("binlog", name, pos))

    def gtid_set(self, gtid_set):
        self.events.append(("gtid", gtid_set))

    def schema(self, database, statement):
        self.events.append(("schema", database, statement.split("(")[0].strip()))

    def data(self, database, table, values):
        self.events.append(("data", database, table, values))


class TestIterStatements:
    """Tests for statement assembly."""

    def test_multi_line_statement(self):
        stream = io.BytesIO(b"CREATE TABLE `t` (\n  `id` int\n);\nUSE `x`;\n")
        assert list(iter_statements(stream)) == [
            "CREATE TABLE `t` (\n  `id` int\n);",
            "USE `x`;",
        ]

    def test_comments_and_blank_lines_skipped(self):
        stream = io.BytesIO(b"-- MySQL dump\n\n-- Host: localhost\nUSE `x`;\n")
        assert list(iter_statements(stream)) == ["USE `x`;"]

    def test_commented_change_master_kept(self):
        stream = io.BytesIO(
            b"-- CHANGE MASTER TO MASTER_LOG_FILE='bin.000001', MASTER_LOG_POS=4;\n"
        )
        assert list(iter_statements(stream)) == [
            "CHANGE MASTER TO MASTER_LOG_FILE='bin.000001', MASTER_LOG_POS=4;"
        ]

    def test_long_comment_line_in_pieces(self):
        """Test every piece of an over-long comment line is skipped."""
        pieces = [b"-- " + b"x" * 64, b"y" * 64, b"still comment;\n", b"USE `x`;\n"]
        assert list(iter_statements(iter(pieces))) == ["USE `x`;"]

    def test_commented_change_master_in_pieces(self):
        pieces = [b"-- CHANGE MASTER TO MASTER_LOG_FILE='bin.0", b"00001', MASTER_LOG_POS=4;\n"]
        assert list(iter_statements(iter(pieces))) == [
            "CHANGE MASTER TO MASTER_LOG_FILE='bin.000001', MASTER_LOG_POS=4;"
        ]

    def test_last_statement_without_newline(self):
        stream = io.BytesIO(b"USE `x`;")
        assert list(iter_statements(stream)) == ["USE `x`;"]

    def test_truncated_statement_raises(self):
        stream = io.BytesIO(b"USE `x`;\nINSERT INTO `t` VALUES (1,'abc")
        with pytest.raises(ParseError, match="ended inside a statement"):
            list(iter_statements(stream))

    def test_multibyte_character_split_across_pieces(self):
        pipe = BytePipe(capacity=4)
        statement = "INSERT INTO `t` VALUES ('héllo wörld');\n".encode("utf-8")

        def produce():
            pipe.writer.write(statement)
            pipe.writer.close()

        thread = threading.Thread(target=produce, daemon=True)
        thread.start()
        statements = list(iter_statements(pipe.reader))
        thread.join(timeout=5)

        assert statements == ["INSERT INTO `t` VALUES ('héllo wörld');"]

    def test_stream_failure_becomes_parse_error(self):
        pipe = BytePipe()
        pipe.writer.write(b"USE `x`;\n")
        pipe.writer.close(ProcessError("mysqldump exited with status 2"))

        statements = iter_statements(pipe.reader)
        assert next(statements) == "USE `x`;"
        with pytest.raises(ParseError, match="status 2"):
            next(statements)


class TestParse:
    """Tests for parse()."""

    def test_full_dump(self):
        handler = RecordingHandler()
        parse(io.BytesIO(DUMP), handler, True, True)

        assert handler.events == [
            ("binlog", "mysql-bin.000042", 1337),
            ("gtid", "3e11fa47-71ca-11e1-9e33-c80aa9429562:1-5,"
                     "4e11fa47-71ca-11e1-9e33-c80aa9429562:1-9"),
            ("schema", "shop", "CREATE DATABASE /*!32312 IF NOT EXISTS*/ `shop` /*!40100 DEFAULT CHARACTER SET utf8 */;"),
            ("schema", "shop", "CREATE TABLE `orders`"),
            ("data", "shop", "orders", "1,'first;\\nline'"),
            ("data", "shop", "orders", "2,NULL"),
        ]

    def test_replication_source_syntax(self):
        handler = RecordingHandler()
        stream = io.BytesIO(
            b"CHANGE REPLICATION SOURCE TO SOURCE_LOG_FILE='binlog.000003', SOURCE_LOG_POS=157;\n"
        )
        parse(stream, handler, True, False)
        assert handler.events == [("binlog", "binlog.000003", 157)]

    def test_preamble_attributes_rows(self):
        handler = RecordingHandler()
        stream = io.BytesIO(
            b"CREATE DATABASE IF NOT EXISTS `shop`;\n"
            b"USE `shop`;\n"
            b"INSERT INTO `orders` VALUES (1);\n"
        )
        parse(stream, handler, False, False)
        assert handler.events[0] == ("schema", "shop", "CREATE DATABASE IF NOT EXISTS `shop`;")
        assert handler.events[1] == ("data", "shop", "orders", "1")

    def test_quoted_identifiers(self):
        handler = RecordingHandler()
        stream = io.BytesIO(b"USE `we``ird`;\nINSERT INTO `ta``ble` VALUES (1);\n")
        parse(stream, handler, False, False)
        assert handler.events == [("data", "we`ird", "ta`ble", "1")]

    def test_row_before_use_raises(self):
        with pytest.raises(ParseError, match="before any USE"):
            parse(io.BytesIO(b"INSERT INTO `orders` VALUES (1);\n"), ParseHandler(), False, False)

    def test_malformed_insert_raises(self):
        stream = io.BytesIO(b"USE `shop`;\nINSERT INTO orders VALUES 1;\n")
        with pytest.raises(ParseError, match="Malformed INSERT"):
            parse(stream, ParseHandler(), False, False)

    def test_missing_binlog_position_raises(self):
        stream = io.BytesIO(b"USE `shop`;\n")
        with pytest.raises(ParseError, match="no binlog position"):
            parse(stream, ParseHandler(), True, False)

    def test_missing_gtid_raises(self):
        stream = io.BytesIO(b"CHANGE MASTER TO MASTER_LOG_FILE='b.1', MASTER_LOG_POS=4;\n")
        with pytest.raises(ParseError, match="no GTID set"):
            parse(stream, ParseHandler(), True, True)

    def test_truncated_stream_raises(self):
        stream = io.BytesIO(b"USE `shop`;\nINSERT INTO `orders` VALUES (1,'ab")
        with pytest.raises(ParseError):
            parse(stream, ParseHandler(), False, False)

    def test_rows_delivered_before_failure_are_kept(self):
        handler = RecordingHandler()
        stream = io.BytesIO(b"USE `shop`;\nINSERT INTO `orders` VALUES (1);\nINSERT INTO `orders` VALUES (2")
        with pytest.raises(ParseError):
            parse(stream, handler, False, False)
        assert handler.events == [("data", "shop", "orders", "1")]


class TestRowCountHandler:
    """Tests for RowCountHandler."""

    def test_collects_stats(self):
        handler = RowCountHandler()
        parse(io.BytesIO(DUMP), handler, True, True)

        stats = handler.stats
        assert stats.binlog_file == "mysql-bin.000042"
        assert stats.binlog_pos == 1337
        assert stats.gtid_set.startswith("3e11fa47")
        assert stats.schema_statements == 2
        assert stats.table("shop", "orders").rows == 2
        assert stats.total_rows == 2

    def test_logs_progress(self, caplog, monkeypatch):
        caplog.set_level(logging.INFO)
        monkeypatch.setattr(RowCountHandler, "LOG_EVERY", 2)
        handler = RowCountHandler()
        for i in range(4):
            handler.data("shop", "orders", str(i))
        assert "shop.orders: 4 rows so far" in caplog.text
