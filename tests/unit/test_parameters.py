"""Unit tests for parameter binding and the parameter type registry.
"""
import datetime
import decimal
import enum

import numpy as np
import pandas as pd
import pytest
from daokit import BasicParameterType, DBColumn, DBEnum, DBObject, NoNullTypeError
from daokit import Parameter, ParameterList, ParameterType, ParameterTypeRegistry
from daokit import SQLType, UnsupportedValueError, default_registry
from daokit.exceptions import IllegalStateError
from daokit.parameter import resolve_bindable


class Color(enum.Enum):
    RED = 1
    BLUE = 2


class Size(DBEnum):
    SMALL = 'S'
    LARGE = 'L'


class Isin(DBColumn):
    def __init__(self, code):
        self.code = code

    def to_column(self):
        return self.code


class Entity(DBObject):
    pass


class Point:
    def __init__(self, x, y):
        self.x = x
        self.y = y


class PointParameterType(ParameterType):
    """Binds a point as two consecutive values."""

    def set_parameter(self, statement, position, value):
        if not isinstance(value, Point):
            return -1
        statement.set_value(position, value.x)
        statement.set_value(position + 1, value.y)
        return position + 2


class TestParameterBinding:
    """Test binding of single parameters."""

    @pytest.mark.parametrize('value', [
        'text', 42, 3.5, True, decimal.Decimal('1.25'),
        datetime.date(2017, 5, 13), datetime.time(16, 42, 43),
        datetime.datetime(2017, 5, 13, 16, 42, 43), b'\x00\x01',
    ], ids=['str', 'int', 'float', 'bool', 'decimal', 'date', 'time', 'datetime', 'bytes'])
    def test_basic_values(self, recording_statement, value):
        statement = recording_statement('SELECT * FROM t WHERE a=?')
        assert Parameter(value).bind(statement, 1) == 2
        assert statement.values == {1: value}

    def test_typed_null(self, recording_statement):
        statement = recording_statement('INSERT INTO t (a) VALUES (?)')
        assert Parameter(None, SQLType.VARCHAR).bind(statement, 1) == 2
        assert statement.values == {1: None}
        assert statement.nulls == {1: SQLType.VARCHAR}

    def test_null_without_type_fails(self, recording_statement):
        statement = recording_statement('INSERT INTO Test (s, i) VALUES (?, ?)')
        with pytest.raises(NoNullTypeError) as exc_info:
            Parameter(None).bind(statement, 2)
        assert exc_info.value.position == 2
        assert exc_info.value.column == 'i'
        assert statement.values == {}

    def test_unsupported_value_names_class(self, recording_statement):
        statement = recording_statement('SELECT * FROM t WHERE a=?')
        with pytest.raises(UnsupportedValueError, match='Point'):
            Parameter(Point(1, 2)).bind(statement, 1)

    def test_plain_enum_binds_name(self, recording_statement):
        statement = recording_statement()
        Parameter(Color.BLUE).bind(statement, 1)
        assert statement.values == {1: 'BLUE'}

    def test_db_enum_binds_identifier(self, recording_statement):
        statement = recording_statement()
        Parameter(Size.LARGE).bind(statement, 1)
        assert statement.values == {1: 'L'}

    def test_db_column_binds_column_value(self, recording_statement):
        statement = recording_statement()
        Parameter(Isin('US0378331005')).bind(statement, 1)
        assert statement.values == {1: 'US0378331005'}

    def test_entity_binds_primary(self, recording_statement):
        entity = Entity()
        entity.primary = 7
        statement = recording_statement()
        Parameter(entity).bind(statement, 1)
        assert statement.values == {1: 7}

    def test_unsaved_entity_needs_type(self, recording_statement):
        statement = recording_statement()
        with pytest.raises(NoNullTypeError):
            Parameter(Entity()).bind(statement, 1)
        Parameter(Entity(), SQLType.BIGINT).bind(statement, 1)
        assert statement.nulls == {1: SQLType.BIGINT}

    def test_conversion_chain_resolved(self):
        class Wrapper:
            def __init__(self, inner):
                self.inner = inner

            def to_bindable(self):
                return self.inner

        assert resolve_bindable(Wrapper(Wrapper(Size.SMALL))) == 'S'

    def test_endless_conversion_fails(self):
        class Flip:
            def to_bindable(self):
                return Flip()

        with pytest.raises(IllegalStateError):
            resolve_bindable(Flip())

    def test_parameter_equality(self):
        assert Parameter(1) == Parameter(1)
        assert Parameter(None, SQLType.INTEGER) != Parameter(None, SQLType.BIGINT)
        assert hash(Parameter('a', SQLType.VARCHAR)) == hash(Parameter('a', SQLType.VARCHAR))


class TestNumpyPandasBinding:
    """Test numpy and pandas scalars bind as plain Python values."""

    @pytest.mark.parametrize(('value', 'expected'), [
        (np.int64(5), 5),
        (np.int32(-3), -3),
        (np.float64(2.5), 2.5),
        (np.bool_(True), True),
        (np.str_('abc'), 'abc'),
        (np.datetime64('2017-05-13T16:42:43'), datetime.datetime(2017, 5, 13, 16, 42, 43)),
        (pd.Timestamp('2017-05-13 16:42:43'), datetime.datetime(2017, 5, 13, 16, 42, 43)),
        (pd.Timedelta(minutes=5), datetime.timedelta(minutes=5)),
    ], ids=['int64', 'int32', 'float64', 'bool', 'str', 'datetime64', 'timestamp', 'timedelta'])
    def test_converted(self, recording_statement, value, expected):
        statement = recording_statement()
        Parameter(value).bind(statement, 1)
        bound = statement.values[1]
        assert bound == expected
        assert not isinstance(bound, np.generic)
        assert not isinstance(bound, pd.Timestamp | pd.Timedelta)

    @pytest.mark.parametrize('value', [
        np.float64('nan'), np.datetime64('NaT'), pd.NaT, pd.NA,
    ], ids=['nan', 'datetime64_nat', 'pd_nat', 'pd_na'])
    def test_missing_values_bind_null(self, recording_statement, value):
        statement = recording_statement()
        Parameter(value).bind(statement, 1)
        assert statement.values == {1: None}

    def test_frame_row_values(self, recording_statement):
        df = pd.DataFrame({'s': ['a'], 'i': [3], 'f': [1.5]})
        row = df.iloc[0]
        statement = recording_statement('INSERT INTO t (s, i, f) VALUES (?, ?, ?)')
        ParameterList(row['s'], row['i'], row['f']).bind(statement)
        assert statement.values == {1: 'a', 2: 3, 3: 1.5}
        assert type(statement.values[2]) is int


class TestParameterList:
    """Test ordered parameter lists."""

    def test_values_wrapped(self):
        params = ParameterList(1, 'a', Parameter(None, SQLType.INTEGER))
        assert len(params) == 3
        assert params[0] == Parameter(1)
        assert params[2].sql_type == SQLType.INTEGER
        assert params.values == [1, 'a', None]

    def test_nested_lists_flattened(self):
        params = ParameterList(ParameterList(1, 2), 3)
        assert params.values == [1, 2, 3]

    def test_add_with_type(self):
        params = ParameterList().add('x').add(None, SQLType.VARCHAR)
        assert params == ParameterList('x', Parameter(None, SQLType.VARCHAR))

    def test_bind_returns_next_position(self, recording_statement):
        statement = recording_statement()
        assert ParameterList(1, 2, 3).bind(statement, 2) == 5
        assert statement.values == {2: 1, 3: 2, 4: 3}


class TestRegistry:
    """Test the ordered adapter registry."""

    def test_default_registry_is_shared(self):
        assert default_registry() is default_registry()
        assert len(default_registry()) == 3

    def test_custom_adapter_can_bind_several_positions(self, recording_statement):
        registry = ParameterTypeRegistry.with_defaults()
        registry.register(PointParameterType())
        statement = recording_statement(registry=registry)
        assert ParameterList(Point(1, 2), 'z').bind(statement) == 4
        assert statement.values == {1: 1, 2: 2, 3: 'z'}

    def test_first_registered_adapter_wins(self, recording_statement):
        class Upper(ParameterType):
            def set_parameter(self, statement, position, value):
                if not isinstance(value, str):
                    return -1
                statement.set_value(position, value.upper())
                return position + 1

        registry = ParameterTypeRegistry([BasicParameterType()])
        registry.register(Upper(), first=True)
        statement = recording_statement(registry=registry)
        Parameter('abc').bind(statement, 1)
        assert statement.values == {1: 'ABC'}

    def test_empty_registry_declines(self, recording_statement):
        statement = recording_statement(registry=ParameterTypeRegistry())
        with pytest.raises(UnsupportedValueError, match='builtins.int'):
            Parameter(1).bind(statement, 1)
