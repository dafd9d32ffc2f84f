import logging
from pathlib import Path

import pytest
from test_base import BaseTestLoader
from test_base import BaseTestRecord
from test_base import BaseTestTag

from firmwarefile.base import FormatError
from firmwarefile.formats.srec import SrecLoader
from firmwarefile.formats.srec import SrecRecord
from firmwarefile.formats.srec import SrecTag

LINES_SINGLE_BLOCK = [
    'S00F000068656C6C6F202020202000003C',
    'S11F00007C0802A6900100049421FFF07C6C1B787C8C23783C6000003863000026',
    'S11F001C4BFFFFE5398000007D83637880010014382100107C0803A64E800020E9',
    'S111003848656C6C6F20776F726C642E0A0042',
    'S5030003F9',
    'S9030000FC',
]

LINES_MULTIPLE_BLOCKS = [
    'S11F10007C0802A6900100049421FFF07C6C1B787C8C23783C6000003863000016',
    'S2200700004BFFFFE5398000007D83637880010014382100107C0803A64E800020FD',
    'S3138000001048656C6C6F20776F726C642E0A00E8',
]

DATA_1 = bytes.fromhex('7C0802A6900100049421FFF07C6C1B787C8C23783C60000038630000')
DATA_2 = bytes.fromhex('4BFFFFE5398000007D83637880010014382100107C0803A64E800020')
DATA_3 = bytes.fromhex('48656C6C6F20776F726C642E0A00')


@pytest.fixture
def tmppath(tmpdir):  # pragma: no cover
    return Path(str(tmpdir))


def join_lines(lines, end='\n'):
    return ''.join(line + end for line in lines).encode()


class TestSrecTag(BaseTestTag):

    Tag = SrecTag

    def test_enum(self):
        for value, tag in enumerate(SrecTag):
            assert tag == value
        assert len(SrecTag) == 10

    def test_from_code(self):
        for value in range(10):
            assert SrecTag.from_code(f'S{value}') == value

    def test_from_code_raises(self):
        for code in ('R1', 's1', 'SA', 'S', 'S12', '', ' 1', 'S-'):
            with pytest.raises(ValueError, match='Unsupported record type'):
                SrecTag.from_code(code)

    def test_get_address_size(self):
        sizes = [2, 2, 3, 4, 2, 2, 2, 2, 2, 2]
        for tag, size in zip(SrecTag, sizes):
            assert tag.get_address_size() == size

    def test_is_data(self):
        data_tags = {SrecTag.DATA_16, SrecTag.DATA_24, SrecTag.DATA_32}
        for tag in SrecTag:
            assert tag.is_data() is (tag in data_tags)


class TestSrecRecord(BaseTestRecord):

    Record = SrecRecord
    Tag_DATA = SrecTag.DATA_16
    Tag_META = SrecTag.HEADER

    def test_compute_checksum(self):
        vector = [
            (0xFC, SrecRecord(SrecTag.HEADER)),
            (0xF9, SrecRecord(SrecTag.COUNT_16, address=3)),
            (0x8D, SrecRecord(SrecTag.DATA_16, address=0x1234, data=b'abc')),
            (0x42, SrecRecord(SrecTag.DATA_16, address=0x0038, data=DATA_3)),
            (0xE8, SrecRecord(SrecTag.DATA_32, address=0x80000010, data=DATA_3)),
        ]
        for expected, record in vector:
            assert record.compute_checksum() == expected

    def test_compute_count(self):
        vector = [
            (3, SrecRecord(SrecTag.HEADER)),
            (6, SrecRecord(SrecTag.DATA_16, data=b'abc')),
            (7, SrecRecord(SrecTag.DATA_24, data=b'abc')),
            (8, SrecRecord(SrecTag.DATA_32, data=b'abc')),
            (3, SrecRecord(SrecTag.START_32)),
        ]
        for expected, record in vector:
            assert record.compute_count() == expected
            assert record.count == expected

    def test_parse(self):
        record = SrecRecord.parse('S111003848656C6C6F20776F726C642E0A0042')
        assert record.tag == SrecTag.DATA_16
        assert record.address == 0x0038
        assert record.count == 0x11
        assert record.data == DATA_3
        assert record.checksum == 0x42

    def test_parse_address_sizes(self):
        record = SrecRecord.parse(LINES_MULTIPLE_BLOCKS[1])
        assert record.tag == SrecTag.DATA_24
        assert record.address == 0x070000
        assert record.data == DATA_2

        record = SrecRecord.parse(LINES_MULTIPLE_BLOCKS[2])
        assert record.tag == SrecTag.DATA_32
        assert record.address == 0x80000010
        assert record.data == DATA_3

    def test_parse_header(self):
        record = SrecRecord.parse(LINES_SINGLE_BLOCK[0])
        assert record.tag == SrecTag.HEADER
        assert record.data == b'hello     \0\0'

    def test_parse_lowercase(self):
        record = SrecRecord.parse('S111003848656c6c6f20776f726c642e0a0042')
        assert record.data == DATA_3

    def test_parse_raises(self):
        vector = [
            ('S11l003848656C6C6F20776F726C642E0A0042', 'Invalid hexadecimal value'),
            ('S1110N3848656C6C6F20776F726C642E0A0042', 'Invalid hexadecimal value'),
            ('S111003848656C6C6F20776F72iC642E0A0042', 'Invalid hexadecimal value'),
            ('S111003848656C6C6F20776F726C642E0A004x', 'Invalid hexadecimal value'),
            ('S3030000FC', 'Invalid hexadecimal value'),
            ('R111003848656C6C6F20776F726C642E0A0042', "Unsupported record type 'R1'"),
            ('s111003848656C6C6F20776F726C642E0A0042', "Unsupported record type 's1'"),
            ('S111003848656C6C6F20776F726C642E0A0043',
             r'Invalid checksum \(expected: 42h, reported: 43h\)'),
            ('S111003', 'Truncated record'),
            ('S1030000F', 'Truncated record'),
            ('S110003848656C6C6F20776F726C642E0A0042', 'Invalid record length'),
            ('S30400000000', 'Invalid record length'),
        ]
        for line, match in vector:
            with pytest.raises(ValueError, match=match):
                SrecRecord.parse(line)


class TestSrecLoader(BaseTestLoader):

    Loader = SrecLoader
    EXPLICIT_ADDRESSES = True

    def test_file_ext_values(self):
        for file_ext in ('.srec', '.s19', '.s28', '.s37', '.mot'):
            assert file_ext in SrecLoader.FILE_EXT

    def test_parse_single_block(self):
        image = SrecLoader.parse(join_lines(LINES_SINGLE_BLOCK))
        assert image.has_explicit_addresses is True
        assert image.to_blocks() == [[0x0000, DATA_1 + DATA_2 + DATA_3]]

    def test_parse_multiple_blocks(self):
        image = SrecLoader.parse(join_lines(LINES_MULTIPLE_BLOCKS))
        assert image.to_blocks() == [
            [0x00001000, DATA_1],
            [0x00070000, DATA_2],
            [0x80000010, DATA_3],
        ]

    def test_parse_no_termination(self):
        lines = LINES_SINGLE_BLOCK[:4]
        image = SrecLoader.parse(join_lines(lines))
        assert image.get_spans() == [(0x0000, 0x0046)]

    def test_parse_records_after_termination(self):
        lines = ['S9030000FC', 'S10612346162638D']
        image = SrecLoader.parse(join_lines(lines))
        assert image.to_blocks() == [[0x1234, b'abc']]

    def test_parse_crlf(self):
        image = SrecLoader.parse(join_lines(LINES_MULTIPLE_BLOCKS, end='\r\n'))
        assert len(image) == 3

    def test_parse_logs_ignored(self, caplog):
        with caplog.at_level(logging.DEBUG, logger='firmwarefile'):
            SrecLoader.parse(join_lines(LINES_SINGLE_BLOCK))
        assert 'ignoring HEADER record' in caplog.messages
        assert 'ignoring COUNT_16 record' in caplog.messages
        assert 'ignoring START_16 record' in caplog.messages

    def test_parse_raises_line_number(self):
        lines = list(LINES_SINGLE_BLOCK)
        lines[3] = 'S111003848656C6C6F20776F726C642E0A0043'
        with pytest.raises(FormatError) as excinfo:
            SrecLoader.parse(join_lines(lines))
        error = excinfo.value
        assert error.line == 4
        assert error.message == 'Invalid checksum (expected: 42h, reported: 43h)'

    def test_parse_raises_unsupported(self):
        with pytest.raises(FormatError) as excinfo:
            SrecLoader.parse(b'\n\nR111003848656C6C6F20776F726C642E0A0042\n')
        error = excinfo.value
        assert error.line == 3
        assert error.message == "Unsupported record type 'R1'"

    def test_load(self, tmppath):
        path = tmppath / 'multiple.mot'
        path.write_bytes(join_lines(LINES_MULTIPLE_BLOCKS))
        image = SrecLoader.load(str(path))
        assert len(image) == 3
        assert image.get_data(0x80000010, len(DATA_3)) == DATA_3
