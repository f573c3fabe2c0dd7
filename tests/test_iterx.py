import uuid
from dataclasses import dataclass, field

import pytest

from cqlx.iterx import Iterx, NotFoundError, Unmarshaler


@dataclass
class FullName(Unmarshaler):
    first_name: str = ""
    last_name: str = ""

    def unmarshal_cql(self, data):
        self.first_name, self.last_name = data.split(" ", 1)


# scannable


def test_scannable_get():
    it = Iterx(["testfullname"], [["John Doe"]])
    assert it.get(FullName) == FullName("John", "Doe")


def test_scannable_select():
    it = Iterx(["testfullname"], [["John Doe"]])
    assert it.select(FullName) == [FullName("John", "Doe")]


def test_scalar_get():
    assert Iterx(["release_version"], [["5.4.0"]]).get(str) == "5.4.0"


# struct only

STRUCT_ONLY_COLUMNS = ["first_name", "last_name"]


def test_struct_only_get():
    it = Iterx(STRUCT_ONLY_COLUMNS, [["John", "Doe"]]).struct_only()
    assert it.get(FullName) == FullName("John", "Doe")


def test_struct_only_select():
    it = Iterx(STRUCT_ONLY_COLUMNS, [["John", "Doe"]]).struct_only()
    assert it.select(FullName) == [FullName("John", "Doe")]


def test_struct_only_get_error_without_flag():
    with pytest.raises(ValueError, match="^expected 1 column in result"):
        Iterx(STRUCT_ONLY_COLUMNS, [["John", "Doe"]]).get(FullName)


def test_struct_only_select_error_without_flag():
    with pytest.raises(ValueError, match="^expected 1 column in result"):
        Iterx(STRUCT_ONLY_COLUMNS, [["John", "Doe"]]).select(FullName)


def test_struct_only_rejects_non_struct():
    with pytest.raises(TypeError, match="expected a struct but got int"):
        Iterx(["a"], [[1]]).struct_only().get(int)


# strict


@dataclass
class StrictTable:
    testtext: str = ""


STRICT_COLUMNS = ["testtext", "testtextunbound"]
STRICT_GOLDEN = 'missing destination name "testtextunbound" in'


def test_strict_get():
    with pytest.raises(ValueError) as err:
        Iterx(STRICT_COLUMNS, [["test", "test"]]).strict().get(StrictTable)
    assert str(err.value).startswith(STRICT_GOLDEN)
    assert str(err.value).endswith("StrictTable")


def test_strict_select():
    with pytest.raises(ValueError) as err:
        Iterx(STRICT_COLUMNS, [["test", "test"]]).strict().select(StrictTable)
    assert str(err.value).startswith(STRICT_GOLDEN)


def test_non_strict_get():
    assert Iterx(STRICT_COLUMNS, [["test", "test"]]).get(StrictTable) == StrictTable("test")


def test_non_strict_select():
    rows = Iterx(STRICT_COLUMNS, [["test", "test"]]).select(StrictTable)
    assert rows == [StrictTable("test")]


# not found


def test_get_not_found():
    with pytest.raises(NotFoundError, match="not found"):
        Iterx(["testtext"], []).get(StrictTable)


def test_select_not_found_is_empty():
    assert Iterx(["testtext"], []).select(StrictTable) == []


def test_get_propagates_row_errors():
    def failing():
        raise RuntimeError("line 1:30 WRONG")
        yield

    with pytest.raises(RuntimeError, match="WRONG"):
        Iterx(["testtext"], failing()).get(StrictTable)


# nil destinations


def test_get_none():
    with pytest.raises(TypeError, match="got None"):
        Iterx(["testtext"], []).get(None)


def test_select_none():
    with pytest.raises(TypeError, match="got None"):
        Iterx(["testtext"], []).select(None)


def test_struct_scan_none():
    with pytest.raises(TypeError, match="got None"):
        Iterx(["testtext"], []).struct_scan(None)


def test_struct_scan_non_struct():
    with pytest.raises(TypeError, match="expected a struct but got int"):
        Iterx(["testtext"], [["x"]]).struct_scan(5)


# struct table


@dataclass
class StructTable:
    testuuid: uuid.UUID = None
    testvarchar: str = ""
    testbigint: int = 0
    testblob: bytes = b""
    testbool: bool = False
    testdouble: float = 0.0
    testlist: list = field(default_factory=list)
    testmap: dict = field(default_factory=dict)
    testcustom: FullName = field(default_factory=FullName)


STRUCT_UUID = uuid.UUID("60fc234a-8481-4343-93bb-72ecab404863")
STRUCT_COLUMNS = [
    "testbigint",
    "testblob",
    "testbool",
    "testcustom",
    "testdouble",
    "testlist",
    "testmap",
    "testuuid",
    "testvarchar",
]
STRUCT_ROW = [
    1500000000,
    b"test blob",
    True,
    "John Doe",
    4.815162342,
    ["quux", "foo", "bar", "baz", "quux"],
    {"field1": "val1", "field2": "val2", "field3": "val3"},
    STRUCT_UUID,
    "Test VarChar",
]
EXPECTED_STRUCT = StructTable(
    testuuid=STRUCT_UUID,
    testvarchar="Test VarChar",
    testbigint=1500000000,
    testblob=b"test blob",
    testbool=True,
    testdouble=4.815162342,
    testlist=["quux", "foo", "bar", "baz", "quux"],
    testmap={"field1": "val1", "field2": "val2", "field3": "val3"},
    testcustom=FullName("John", "Doe"),
)


def test_struct_get():
    assert Iterx(STRUCT_COLUMNS, [STRUCT_ROW]).get(StructTable) == EXPECTED_STRUCT


def test_struct_select():
    rows = Iterx(STRUCT_COLUMNS, [STRUCT_ROW]).select(StructTable)
    assert len(rows) == 1
    assert rows[0] == EXPECTED_STRUCT


def test_struct_scan_loop():
    it = Iterx(STRUCT_COLUMNS, [STRUCT_ROW])
    value = StructTable()
    n = 0
    while it.struct_scan(value):
        n += 1
    it.close()
    assert n == 1
    assert value == EXPECTED_STRUCT


# paging


@dataclass
class Paging:
    id: int = 0
    val: int = 0


def test_paging_struct_scan_counts_rows():
    it = Iterx(["id", "val"], ((i, i) for i in range(100)))
    count = 0
    last = None
    while True:
        p = Paging()
        if not it.struct_scan(p):
            break
        last = p
        count += 1
    assert count == 100
    assert last == Paging(99, 99)
    assert it.num_rows() == 100


# CAS


def test_cas_applied_column():
    @dataclass
    class Employee:
        id: int = 0
        salary: int = 0

    john = Employee(id=0, salary=2000)
    it = Iterx(["[applied]", "id", "salary"], [[False, 0, 1000]]).strict()
    assert it.struct_scan(john) is True
    assert it.applied is False
    assert john.salary == 1000


def test_cas_applied_true():
    @dataclass
    class Employee:
        id: int = 0
        salary: int = 0

    it = Iterx(["[applied]"], [[True]])
    assert it.struct_scan(Employee()) is True
    assert it.applied is True


# mapping details


def test_tagged_field():
    @dataclass
    class Blob:
        buffer: bytes = field(default=b"", metadata={"db": "b"})
        mapping: dict = field(default_factory=dict, metadata={"db": "m"})

    row = [1, b"\xff" * 16, {"test": b"\xff" * 16}]
    got = Iterx(["k", "b", "m"], [row]).get(Blob)
    assert got.buffer == b"\xff" * 16
    assert got.mapping == {"test": b"\xff" * 16}


def test_nested_attribute():
    @dataclass
    class Address:
        city: str = ""

    @dataclass
    class Customer:
        name: str = ""
        address: Address = None

    got = Iterx(["name", "address.city"], [["Ann", "Oslo"]]).get(Customer)
    assert got == Customer("Ann", Address("Oslo"))


def test_dataclass_without_defaults():
    @dataclass
    class Pair:
        a: int
        b: int

    assert Iterx(["a", "b"], [[1, 2], [3, 4]]).select(Pair) == [Pair(1, 2), Pair(3, 4)]


def test_none_value_into_unmarshaler_field():
    @dataclass
    class Holder:
        name: FullName = None

    assert Iterx(["name"], [[None], ["A B"]]).select(Holder) == [
        Holder(None),
        Holder(FullName("A", "B")),
    ]


# raw scanning and closing


def test_scan_rows_and_num_rows():
    it = Iterx(["a", "b"], [[1, 2], [3, 4]])
    assert it.scan() == (1, 2)
    assert it.scan() == (3, 4)
    assert it.scan() is None
    assert it.num_rows() == 2


def test_row_length_mismatch():
    with pytest.raises(ValueError, match="expected 2 values in row but got 1"):
        Iterx(["a", "b"], [[1]]).scan()


def test_close_stops_iteration_and_closes_source():
    source = (row for row in [[1], [2]])
    with Iterx(["a"], source) as it:
        assert it.scan() == (1,)
    assert it.scan() is None
    with pytest.raises(StopIteration):
        next(source)


def test_get_closes_iterator():
    it = Iterx(["a"], [[1], [2]])
    assert it.get(int) == 1
    assert it.scan() is None