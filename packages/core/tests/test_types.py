"""Tests for object/collection bind marshaling and routine calls."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import oracledb
import pytest

from db_oracle.db.connection import DatabaseError
from db_oracle.db.types import (
    OracleArray,
    OracleObject,
    OutParam,
    ParameterTypeError,
    TypeResolver,
    call_function,
    call_procedure,
    decode_json_param,
    execute,
    marshal_params,
    normalize_type_name,
    to_db_object,
    unmarshal_value,
)


def _collection_type(name="PHONE_LIST_T", element_type=oracledb.DB_TYPE_VARCHAR):
    obj_type = MagicMock(spec=oracledb.DbObjectType)
    obj_type.schema = "HR"
    obj_type.name = name
    obj_type.iscollection = True
    obj_type.element_type = element_type
    obj_type.newobject.side_effect = lambda values=None: SimpleNamespace(values=values)
    return obj_type


def _object_type(name="ADDRESS_T", **attribute_types):
    obj_type = MagicMock(spec=oracledb.DbObjectType)
    obj_type.schema = "HR"
    obj_type.name = name
    obj_type.iscollection = False
    obj_type.attributes = [
        SimpleNamespace(name=attr, type=attr_type) for attr, attr_type in attribute_types.items()
    ]
    obj_type.newobject.side_effect = lambda: SimpleNamespace()
    return obj_type


def _connection(**types_by_name):
    connection = MagicMock()

    def gettype(name):
        if name not in types_by_name:
            raise oracledb.DatabaseError(f"ORA-04043: object {name} does not exist")
        return types_by_name[name]

    connection.gettype.side_effect = gettype
    return connection


def _engine_for(dbapi_conn):
    engine = MagicMock()
    conn = MagicMock()
    conn.connection.driver_connection = dbapi_conn
    engine.connect.return_value.__enter__.return_value = conn
    return engine, conn


class TestTypeResolver:
    def test_normalizes_and_caches(self):
        phones = _collection_type()
        connection = _connection(**{"HR.PHONE_LIST_T": phones})
        resolver = TypeResolver(connection)

        assert resolver.resolve("hr.phone_list_t") is phones
        assert resolver.resolve("HR.PHONE_LIST_T") is phones
        connection.gettype.assert_called_once_with("HR.PHONE_LIST_T")

    def test_quoted_parts_keep_case(self):
        assert normalize_type_name('hr."Phones"') == "HR.Phones"

    def test_unknown_type(self):
        resolver = TypeResolver(_connection())

        with pytest.raises(ParameterTypeError, match="Unknown type HR.NOPE"):
            resolver.resolve("HR.NOPE")


class TestToDbObject:
    def test_array(self):
        phones = _collection_type()
        resolver = TypeResolver(_connection(**{"HR.PHONE_LIST_T": phones}))

        obj = to_db_object(resolver, OracleArray("HR.PHONE_LIST_T", ["555-0100", "555-0101"]))

        assert obj.values == ["555-0100", "555-0101"]

    def test_object_with_case_insensitive_attributes(self):
        address = _object_type(STREET=oracledb.DB_TYPE_VARCHAR, ZIP=oracledb.DB_TYPE_NUMBER)
        resolver = TypeResolver(_connection(**{"HR.ADDRESS_T": address}))

        obj = to_db_object(resolver, OracleObject("HR.ADDRESS_T", {"street": "Main", "ZIP": 1234}))

        assert obj.STREET == "Main"
        assert obj.ZIP == 1234

    def test_nested_object_in_collection(self):
        address = _object_type(CITY=oracledb.DB_TYPE_VARCHAR)
        addresses = _collection_type("ADDRESS_TAB_T", element_type=address)
        resolver = TypeResolver(_connection(**{"HR.ADDRESS_TAB_T": addresses}))

        obj = to_db_object(resolver, OracleArray("HR.ADDRESS_TAB_T", [{"city": "Oslo"}, None]))

        assert obj.values[0].CITY == "Oslo"
        assert obj.values[1] is None

    def test_unknown_attribute(self):
        address = _object_type(CITY=oracledb.DB_TYPE_VARCHAR)
        resolver = TypeResolver(_connection(**{"HR.ADDRESS_T": address}))

        with pytest.raises(ParameterTypeError, match="has no attribute 'country'"):
            to_db_object(resolver, OracleObject("HR.ADDRESS_T", {"country": "NO"}))

    def test_array_for_object_type_rejected(self):
        address = _object_type(CITY=oracledb.DB_TYPE_VARCHAR)
        resolver = TypeResolver(_connection(**{"HR.ADDRESS_T": address}))

        with pytest.raises(ParameterTypeError, match="not a collection type"):
            to_db_object(resolver, OracleArray("HR.ADDRESS_T", ["x"]))

    def test_object_for_collection_type_rejected(self):
        phones = _collection_type()
        resolver = TypeResolver(_connection(**{"HR.PHONE_LIST_T": phones}))

        with pytest.raises(ParameterTypeError, match="is a collection type"):
            to_db_object(resolver, OracleObject("HR.PHONE_LIST_T", {}))

    def test_scalar_where_list_expected(self):
        address = _object_type(PHONES=_collection_type())
        resolver = TypeResolver(_connection(**{"HR.ADDRESS_T": address}))

        with pytest.raises(ParameterTypeError, match="expects a list, got str"):
            to_db_object(resolver, OracleObject("HR.ADDRESS_T", {"phones": "555-0100"}))

    def test_driver_failure_is_wrapped(self):
        phones = _collection_type()
        phones.newobject.side_effect = oracledb.DatabaseError("DPY-2007: value too large")
        resolver = TypeResolver(_connection(**{"HR.PHONE_LIST_T": phones}))

        with pytest.raises(ParameterTypeError, match="Cannot convert value to HR.PHONE_LIST_T"):
            to_db_object(resolver, OracleArray("HR.PHONE_LIST_T", ["x" * 100]))

    def test_parameter_type_error_is_database_error(self):
        assert issubclass(ParameterTypeError, DatabaseError)


class TestMarshalParams:
    def test_named_params(self):
        phones = _collection_type()
        connection = _connection(**{"HR.PHONE_LIST_T": phones})

        bound = marshal_params(connection, {"id": 7, "phones": OracleArray("HR.PHONE_LIST_T")})

        assert bound["id"] == 7
        assert bound["phones"].values == []

    def test_positional_params(self):
        phones = _collection_type()
        connection = _connection(**{"HR.PHONE_LIST_T": phones})

        bound = marshal_params(connection, [OracleArray("HR.PHONE_LIST_T", ["1"]), "x"])

        assert bound[0].values == ["1"]
        assert bound[1] == "x"

    def test_empty_params_unchanged(self):
        assert marshal_params(MagicMock(), None) is None
        assert marshal_params(MagicMock(), {}) == {}


class TestUnmarshalValue:
    def test_collection_becomes_list(self):
        value = MagicMock(spec=oracledb.DbObject)
        value.type = _collection_type()
        value.aslist.return_value = ["a", "b"]

        assert unmarshal_value(value) == ["a", "b"]

    def test_object_becomes_dict(self):
        value = MagicMock(spec=oracledb.DbObject)
        value.type = _object_type(CITY=oracledb.DB_TYPE_VARCHAR, ZIP=oracledb.DB_TYPE_NUMBER)
        value.CITY = "Oslo"
        value.ZIP = 150

        assert unmarshal_value(value) == {"CITY": "Oslo", "ZIP": 150}

    def test_lob_is_read(self):
        value = MagicMock(spec=oracledb.LOB)
        value.read.return_value = "long text"

        assert unmarshal_value(value) == "long text"

    def test_plain_values_unchanged(self):
        assert unmarshal_value(42) == 42
        assert unmarshal_value(None) is None


class TestDecodeJsonParam:
    def test_typed_array_and_object(self):
        decoded = decode_json_param(
            {
                "phones": {"$type": "HR.PHONE_LIST_T", "$value": ["555-0100"]},
                "home": {"$type": "HR.ADDRESS_T", "$value": {"city": "Oslo"}},
                "id": 7,
            }
        )

        assert decoded["phones"] == OracleArray("HR.PHONE_LIST_T", ["555-0100"])
        assert decoded["home"] == OracleObject("HR.ADDRESS_T", {"city": "Oslo"})
        assert decoded["id"] == 7

    def test_nested_typed_values(self):
        decoded = decode_json_param(
            {
                "$type": "HR.ADDRESS_TAB_T",
                "$value": [{"$type": "HR.ADDRESS_T", "$value": {"city": "Oslo"}}],
            }
        )

        assert decoded == OracleArray(
            "HR.ADDRESS_TAB_T", [OracleObject("HR.ADDRESS_T", {"city": "Oslo"})]
        )

    def test_scalar_value_rejected(self):
        with pytest.raises(ParameterTypeError, match="needs a list or object"):
            decode_json_param({"$type": "HR.PHONE_LIST_T", "$value": "555-0100"})


class TestExecute:
    def test_query_with_collection_bind(self):
        phones = _collection_type()
        dbapi_conn = _connection(**{"HR.PHONE_LIST_T": phones})
        engine, conn = _engine_for(dbapi_conn)
        result = MagicMock()
        result.returns_rows = True
        result.keys.return_value = ["ID"]
        result.__iter__.return_value = iter([(1,), (2,)])
        conn.execute.return_value = result

        rows = execute(
            engine,
            "SELECT id FROM emp WHERE phone IN (SELECT column_value FROM TABLE(:phones))",
            {"phones": OracleArray("HR.PHONE_LIST_T", ["555-0100"])},
        )

        assert rows == [{"ID": 1}, {"ID": 2}]
        bound = conn.execute.call_args.args[1]
        assert bound["phones"].values == ["555-0100"]
        conn.commit.assert_not_called()

    def test_dml_is_committed(self):
        engine, conn = _engine_for(_connection())
        conn.execute.return_value.returns_rows = False

        assert execute(engine, "DELETE FROM emp WHERE id = :id", {"id": 1}) == []
        conn.commit.assert_called_once()

    def test_positional_binds_use_driver_sql(self):
        engine, conn = _engine_for(_connection())
        conn.exec_driver_sql.return_value.returns_rows = False

        execute(engine, "UPDATE emp SET name = :1 WHERE id = :2", ["Bob", 3])

        conn.exec_driver_sql.assert_called_once_with(
            "UPDATE emp SET name = :1 WHERE id = :2", ("Bob", 3)
        )

    def test_failures_become_database_errors(self):
        engine, conn = _engine_for(_connection())
        conn.execute.side_effect = RuntimeError("ORA-00942: table or view does not exist")

        with pytest.raises(DatabaseError, match="Failed to execute SQL"):
            execute(engine, "SELECT * FROM missing")

    def test_unknown_type_reported(self):
        engine, _ = _engine_for(_connection())

        with pytest.raises(ParameterTypeError, match="Unknown type"):
            execute(engine, "BEGIN p(:x); END;", {"x": OracleArray("HR.NOPE", [])})


class TestRoutineCalls:
    def test_call_procedure_with_out_param(self):
        phones = _collection_type()
        dbapi_conn = _connection(**{"HR.PHONE_LIST_T": phones})
        cursor = dbapi_conn.cursor.return_value.__enter__.return_value
        out_var = MagicMock()
        cursor.var.return_value = out_var
        cursor.callproc.return_value = [7, "Alice"]
        engine, _ = _engine_for(dbapi_conn)

        result = call_procedure(engine, "hr.emp_pkg.get_name", [7, OutParam(str)])

        assert result == [7, "Alice"]
        cursor.var.assert_called_once_with(str)
        assert cursor.callproc.call_args.args == ("hr.emp_pkg.get_name", [7, out_var])
        dbapi_conn.commit.assert_called_once()

    def test_in_out_object_param(self):
        address = _object_type(CITY=oracledb.DB_TYPE_VARCHAR)
        dbapi_conn = _connection(**{"HR.ADDRESS_T": address})
        cursor = dbapi_conn.cursor.return_value.__enter__.return_value
        engine, _ = _engine_for(dbapi_conn)

        call_procedure(
            engine,
            "hr.normalize_address",
            [OutParam(type_name="HR.ADDRESS_T", value={"city": "oslo"})],
            commit=False,
        )

        cursor.var.assert_called_once_with(address)
        set_value = cursor.var.return_value.setvalue.call_args.args
        assert set_value[0] == 0
        assert set_value[1].CITY == "oslo"
        dbapi_conn.commit.assert_not_called()

    def test_call_function_with_collection_return(self):
        phones = _collection_type()
        dbapi_conn = _connection(**{"HR.PHONE_LIST_T": phones})
        cursor = dbapi_conn.cursor.return_value.__enter__.return_value
        returned = MagicMock(spec=oracledb.DbObject)
        returned.type = phones
        returned.aslist.return_value = ["555-0100"]
        cursor.callfunc.return_value = returned
        engine, _ = _engine_for(dbapi_conn)

        value = call_function(engine, "hr.phones_of", "hr.phone_list_t", [7])

        assert value == ["555-0100"]
        assert cursor.callfunc.call_args.args == ("hr.phones_of", phones, [7])

    def test_call_function_failure(self):
        dbapi_conn = _connection()
        cursor = dbapi_conn.cursor.return_value.__enter__.return_value
        cursor.callfunc.side_effect = RuntimeError("ORA-06550: PLS-00201")
        engine, _ = _engine_for(dbapi_conn)

        with pytest.raises(DatabaseError, match="Failed to call function hr.nope"):
            call_function(engine, "hr.nope", int)
