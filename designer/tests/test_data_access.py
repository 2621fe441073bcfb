import base64
import json
import os
import shutil
import tempfile
import unittest
from datetime import datetime, timezone
from unittest import mock

from designer.app.core.exceptions import (
    ConfigValidationError,
    MissingFieldError,
    SourceQueryError,
    UnsupportedSourceError,
)
from designer.app.models.datasource import DataSource, RestConfig
from designer.app.models.object_def import ObjectDef, ObjectField


def rest_source(authentication="none", **extra):
    config = {"baseUrl": "https://api.example.com/v1/", "authentication": authentication}
    config.update(extra)
    return DataSource.model_validate({"name": "api", "type": "rest", "config": config})


def people_object(source="people"):
    return ObjectDef(
        name="person",
        source=source,
        primary_key="id",
        data_source="db",
        fields=[
            ObjectField(name="id", type="number", required=True, mapping="person_id"),
            ObjectField(name="name", type="string", required=True, mapping="full_name"),
            ObjectField(name="active", type="boolean", required=False, mapping="is_active"),
        ],
    )


class TestConvertValue(unittest.TestCase):
    def setUp(self):
        from designer.app.services.data_access import convert_value
        self.convert = convert_value

    def test_none_passes_through(self):
        for target in ("string", "number", "boolean", "date", "array", "object"):
            self.assertIsNone(self.convert(None, target))

    def test_string(self):
        self.assertEqual(self.convert(42, "string"), "42")
        self.assertEqual(self.convert("abc", "string"), "abc")

    def test_number(self):
        self.assertEqual(self.convert("123", "number"), 123)
        self.assertIsInstance(self.convert("123", "number"), int)
        self.assertEqual(self.convert("12.5", "number"), 12.5)
        self.assertEqual(self.convert(7, "number"), 7)
        self.assertEqual(self.convert(True, "number"), 1)
        self.assertIsNone(self.convert("not a number", "number"))

    def test_number_keeps_integer_precision(self):
        self.assertEqual(self.convert("12345678901234567890", "number"), 12345678901234567890)
        self.assertEqual(self.convert(" -42 ", "number"), -42)

    def test_number_rejects_unreadable_text(self):
        self.assertIsNone(self.convert("1_000", "number"))
        self.assertIsNone(self.convert("1e400", "number"))
        self.assertIsNone(self.convert("nan", "number"))
        self.assertIsNone(self.convert(float("inf"), "number"))

    def test_boolean(self):
        self.assertIs(self.convert("true", "boolean"), True)
        self.assertIs(self.convert("FALSE", "boolean"), False)
        self.assertIs(self.convert("0", "boolean"), False)
        self.assertIs(self.convert("yes", "boolean"), True)
        self.assertIs(self.convert(0, "boolean"), False)
        self.assertIs(self.convert(1, "boolean"), True)
        self.assertIs(self.convert("On", "boolean"), True)
        self.assertIs(self.convert("off", "boolean"), False)

    def test_date(self):
        value = self.convert("2024-01-15T10:30:00Z", "date")
        self.assertEqual(value, datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc))
        self.assertEqual(self.convert("2024-01-15", "date"), datetime(2024, 1, 15))
        self.assertEqual(self.convert(0, "date"), datetime(1970, 1, 1, tzinfo=timezone.utc))

    def test_unreadable_date_becomes_none(self):
        self.assertIsNone(self.convert("not a date", "date"))
        self.assertIsNone(self.convert("2024-13-45", "date"))
        self.assertIsNone(self.convert(10 ** 20, "date"))

    def test_array(self):
        self.assertEqual(self.convert([1, 2], "array"), [1, 2])
        self.assertEqual(self.convert((1, 2), "array"), [1, 2])
        self.assertEqual(self.convert("x", "array"), ["x"])

    def test_object(self):
        self.assertEqual(self.convert({"a": 1}, "object"), {"a": 1})
        self.assertEqual(self.convert('{"a": 1}', "object"), {"a": 1})
        self.assertIsNone(self.convert("{broken", "object"))

    def test_unknown_type_passes_through(self):
        self.assertEqual(self.convert("x", None), "x")
        self.assertEqual(self.convert(5, "currency"), 5)


class TestMapping(unittest.TestCase):
    def setUp(self):
        from designer.app.services.data_access import DataAccessManager
        self.access = DataAccessManager()

    def test_maps_list_of_rows(self):
        rows = [
            {"person_id": "1", "full_name": "Ada", "is_active": "true", "ignored": 1},
            {"person_id": 2, "full_name": "Linus"},
        ]
        mapped = self.access.map_data_to_object(rows, people_object())
        self.assertEqual(mapped, [
            {"id": 1, "name": "Ada", "active": True},
            {"id": 2, "name": "Linus"},
        ])

    def test_maps_single_record(self):
        mapped = self.access.map_data_to_object({"person_id": "3", "full_name": "Grace"}, people_object())
        self.assertEqual(mapped, {"id": 3, "name": "Grace"})

    def test_missing_required_field_raises(self):
        with self.assertRaises(MissingFieldError) as ctx:
            self.access.map_data_to_object([{"person_id": 1}], people_object())
        self.assertEqual(ctx.exception.field_name, "name")

    def test_non_object_record_raises(self):
        with self.assertRaises(SourceQueryError):
            self.access.map_data_to_object(["just a string"], people_object())


class TestRestAccess(unittest.TestCase):
    def test_auth_headers(self):
        from designer.app.services.data_access import build_auth_headers

        self.assertEqual(build_auth_headers(RestConfig(base_url="x")), {"Content-Type": "application/json"})

        bearer = build_auth_headers(RestConfig(base_url="x", authentication="apikey", api_key="k-123"))
        self.assertEqual(bearer["Authorization"], "Bearer k-123")

        basic = build_auth_headers(RestConfig(base_url="x", authentication="basic", username="u", password="p"))
        self.assertEqual(basic["Authorization"], "Basic " + base64.b64encode(b"u:p").decode())

        # incomplete credentials send no Authorization header
        self.assertNotIn("Authorization", build_auth_headers(RestConfig(base_url="x", authentication="basic", username="u")))

    def test_join_url_collapses_slashes(self):
        from designer.app.services.data_access import join_url

        self.assertEqual(join_url("https://api.example.com/v1/", "/users"), "https://api.example.com/v1/users")
        self.assertEqual(join_url("http://localhost:8080", "items"), "http://localhost:8080/items")

    def test_query_rest_sends_auth_and_parses_json(self):
        from designer.app.services import data_access

        response = mock.Mock(ok=True, status_code=200, content=b"[]")
        response.json.return_value = [{"id": 1}]
        with mock.patch.object(data_access.requests, "request", return_value=response) as request:
            result = data_access.DataAccessManager().query_rest(rest_source("apikey", apiKey="secret"), "users")

        self.assertEqual(result, [{"id": 1}])
        args, kwargs = request.call_args
        self.assertEqual(args, ("GET", "https://api.example.com/v1/users"))
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer secret")

    def test_query_rest_http_error(self):
        from designer.app.services import data_access

        response = mock.Mock(ok=False, status_code=404, reason="Not Found")
        with mock.patch.object(data_access.requests, "request", return_value=response):
            with self.assertRaises(SourceQueryError) as ctx:
                data_access.DataAccessManager().query_rest(rest_source(), "missing")
        self.assertEqual(ctx.exception.message, "HTTP 404: Not Found")

    def test_query_rest_rejects_other_source_types(self):
        from designer.app.services.data_access import DataAccessManager

        source = DataSource.model_validate(
            {"name": "fs", "type": "filesystem", "config": {"basePath": "data"}}
        )
        with self.assertRaises(UnsupportedSourceError):
            DataAccessManager().query_rest(source, "users")


class TestFileSystemAccess(unittest.TestCase):
    def setUp(self):
        from designer.app.core.config import settings

        self.settings = settings
        self.tmp = tempfile.mkdtemp()
        self._orig_root = settings.FILESYSTEM_ROOT
        settings.FILESYSTEM_ROOT = self.tmp
        os.makedirs(os.path.join(self.tmp, "data"))

        with open(os.path.join(self.tmp, "data", "people.json"), "w") as f:
            json.dump([{"person_id": 1, "full_name": "Ada"}], f)
        with open(os.path.join(self.tmp, "data", "people.csv"), "w") as f:
            f.write("person_id,full_name,is_active\n1,Ada,true\n2,,false\n")

    def tearDown(self):
        self.settings.FILESYSTEM_ROOT = self._orig_root
        shutil.rmtree(self.tmp, ignore_errors=True)

    def source(self, fmt="json"):
        return DataSource.model_validate(
            {"name": "files", "type": "filesystem", "config": {"basePath": "data", "format": fmt}}
        )

    def test_reads_json_relative_to_base_path(self):
        from designer.app.services.data_access import DataAccessManager

        data = DataAccessManager().query_filesystem(self.source(), "people.json")
        self.assertEqual(data, [{"person_id": 1, "full_name": "Ada"}])

    def test_reads_csv_records_with_nulls(self):
        from designer.app.services.data_access import DataAccessManager

        data = DataAccessManager().query_filesystem(self.source("csv"), "people.csv")
        self.assertEqual(len(data), 2)
        self.assertEqual(data[0]["full_name"], "Ada")
        self.assertIsNone(data[1]["full_name"])

    def test_csv_cells_keep_their_text(self):
        from designer.app.services.data_access import DataAccessManager

        with open(os.path.join(self.tmp, "data", "towns.csv"), "w") as f:
            f.write("zip,name,population\n00501,Holtsville,1234\n")
        town = ObjectDef(
            name="town",
            source="towns.csv",
            fields=[
                ObjectField(name="zip", type="string", required=True, mapping="zip"),
                ObjectField(name="population", type="number", required=False, mapping="population"),
            ],
        )

        data = DataAccessManager().fetch_object_data(town, self.source("csv"))
        self.assertEqual(data, [{"zip": "00501", "population": 1234}])

    def test_unreadable_values_do_not_fail_the_fetch(self):
        from designer.app.services.data_access import DataAccessManager

        with open(os.path.join(self.tmp, "data", "events.json"), "w") as f:
            f.write(
                '[{"id": "1", "at": "not a date", "size": "1_000"},'
                ' {"id": "2", "at": 100000000000000000000, "size": 1e400}]'
            )
        event = ObjectDef(
            name="event",
            source="events.json",
            fields=[
                ObjectField(name="id", type="number", required=True, mapping="id"),
                ObjectField(name="at", type="date", required=False, mapping="at"),
                ObjectField(name="size", type="number", required=False, mapping="size"),
            ],
        )

        data = DataAccessManager().fetch_object_data(event, self.source())
        self.assertEqual(data, [
            {"id": 1, "at": None, "size": None},
            {"id": 2, "at": None, "size": None},
        ])

    def test_missing_file_raises_query_error(self):
        from designer.app.services.data_access import DataAccessManager

        with self.assertRaises(SourceQueryError) as ctx:
            DataAccessManager().query_filesystem(self.source(), "nope.json")
        self.assertIn("Error reading file nope.json", ctx.exception.message)

    def test_path_outside_base_is_rejected(self):
        from designer.app.services.data_access import DataAccessManager

        with self.assertRaises(ConfigValidationError):
            DataAccessManager().query_filesystem(self.source(), "../../etc/passwd")

    def test_fetch_object_data_maps_file_rows(self):
        from designer.app.services.data_access import DataAccessManager

        obj = people_object(source="people.json")
        obj.fields = obj.fields[:2]
        self.assertEqual(DataAccessManager().fetch_object_data(obj, self.source()), [{"id": 1, "name": "Ada"}])

    def test_filesystem_sources_are_read_only(self):
        from designer.app.services.data_access import DataAccessManager

        with self.assertRaises(UnsupportedSourceError):
            DataAccessManager().insert_object_data(people_object(), self.source(), {"id": 1, "name": "x"})


class TestMySQLAccess(unittest.TestCase):
    def setUp(self):
        from sqlalchemy import create_engine, text
        import designer.app.services.data_access as data_access

        self.tmp = tempfile.mkdtemp()
        self.engine = create_engine(f"sqlite:///{os.path.join(self.tmp, 'test.db')}")
        with self.engine.begin() as conn:
            conn.execute(text("CREATE TABLE `people` (`person_id` INTEGER PRIMARY KEY, `full_name` TEXT, `is_active` INTEGER)"))
            conn.execute(text("INSERT INTO `people` VALUES (1, 'Ada', 1), (2, 'Linus', 0)"))

        self.data_access = data_access
        self._orig_create_engine = data_access.create_engine
        data_access.create_engine = lambda *_args, **_kwargs: self.engine

        self.source = DataSource.model_validate({
            "name": "db",
            "type": "mysql",
            "config": {"server": "localhost", "username": "root", "password": "pw", "database": "test_db"},
        })

    def tearDown(self):
        self.data_access.create_engine = self._orig_create_engine
        self.engine.dispose()
        shutil.rmtree(self.tmp, ignore_errors=True)

    def test_parameterized_query(self):
        rows = self.data_access.DataAccessManager().query_mysql(
            self.source, "SELECT `full_name` FROM `people` WHERE `person_id` = :pid", {"pid": 2}
        )
        self.assertEqual(rows, [{"full_name": "Linus"}])

    def test_fetch_object_data(self):
        data = self.data_access.DataAccessManager().fetch_object_data(people_object(), self.source)
        self.assertEqual(data, [
            {"id": 1, "name": "Ada", "active": True},
            {"id": 2, "name": "Linus", "active": False},
        ])

    def test_insert_maps_fields_back_to_columns(self):
        access = self.data_access.DataAccessManager()
        access.insert_object_data(people_object(), self.source, {"id": 3, "name": "Grace", "active": True})

        rows = access.query_mysql(self.source, "SELECT `full_name` FROM `people` WHERE `person_id` = 3")
        self.assertEqual(rows, [{"full_name": "Grace"}])

    def test_insert_requires_required_fields(self):
        with self.assertRaises(ConfigValidationError) as ctx:
            self.data_access.DataAccessManager().insert_object_data(people_object(), self.source, {"id": 4})
        self.assertEqual(ctx.exception.details, ["Field 'name' is required"])

    def test_sql_errors_become_query_errors(self):
        with self.assertRaises(SourceQueryError):
            self.data_access.DataAccessManager().query_mysql(self.source, "SELECT * FROM `missing_table`")


if __name__ == "__main__":
    unittest.main()
