"""Decoder for the JVM class-file format.

Only the parts the linkage checker consumes are decoded into objects:

- the constant pool (every tag, so indexes stay aligned);
- this/super class and interface names;
- methods, with their ``Code`` attribute;
- the class-level ``InnerClasses`` attribute.

Fields and every other attribute are skipped over by length.  Bytecode is
walked instruction by instruction so that operands are never mistaken for
opcodes.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import ClassFormatError

MAGIC = 0xCAFEBABE

# Constant pool tags (JVMS 4.4)
CONSTANT_UTF8 = 1
CONSTANT_INTEGER = 3
CONSTANT_FLOAT = 4
CONSTANT_LONG = 5
CONSTANT_DOUBLE = 6
CONSTANT_CLASS = 7
CONSTANT_STRING = 8
CONSTANT_FIELDREF = 9
CONSTANT_METHODREF = 10
CONSTANT_INTERFACE_METHODREF = 11
CONSTANT_NAME_AND_TYPE = 12
CONSTANT_METHOD_HANDLE = 15
CONSTANT_METHOD_TYPE = 16
CONSTANT_DYNAMIC = 17
CONSTANT_INVOKE_DYNAMIC = 18
CONSTANT_MODULE = 19
CONSTANT_PACKAGE = 20

# Payload size in bytes for the fixed-size tags
_FIXED_CONSTANT_SIZES: Dict[int, int] = {
    CONSTANT_INTEGER: 4,
    CONSTANT_FLOAT: 4,
    CONSTANT_LONG: 8,
    CONSTANT_DOUBLE: 8,
    CONSTANT_CLASS: 2,
    CONSTANT_STRING: 2,
    CONSTANT_FIELDREF: 4,
    CONSTANT_METHODREF: 4,
    CONSTANT_INTERFACE_METHODREF: 4,
    CONSTANT_NAME_AND_TYPE: 4,
    CONSTANT_METHOD_HANDLE: 3,
    CONSTANT_METHOD_TYPE: 2,
    CONSTANT_DYNAMIC: 4,
    CONSTANT_INVOKE_DYNAMIC: 4,
    CONSTANT_MODULE: 2,
    CONSTANT_PACKAGE: 2,
}

# Opcodes
INVOKEVIRTUAL = 0xB6
INVOKESPECIAL = 0xB7
INVOKESTATIC = 0xB8
INVOKEINTERFACE = 0xB9
INVOKEDYNAMIC = 0xBA
TABLESWITCH = 0xAA
LOOKUPSWITCH = 0xAB
WIDE = 0xC4
IINC = 0x84

INVOKE_OPCODES = frozenset({INVOKEVIRTUAL, INVOKESPECIAL, INVOKESTATIC, INVOKEINTERFACE})


def _operand_sizes() -> Dict[int, int]:
    sizes = {opcode: 0 for opcode in range(0x00, 0xCA)}
    sizes[0x10] = 1  # bipush
    sizes[0x11] = 2  # sipush
    sizes[0x12] = 1  # ldc
    sizes[0x13] = 2  # ldc_w
    sizes[0x14] = 2  # ldc2_w
    for opcode in range(0x15, 0x1A):  # iload .. aload
        sizes[opcode] = 1
    for opcode in range(0x36, 0x3B):  # istore .. astore
        sizes[opcode] = 1
    sizes[IINC] = 2
    for opcode in range(0x99, 0xA9):  # if<cond>, if_icmp<cond>, if_acmp<cond>, goto, jsr
        sizes[opcode] = 2
    sizes[0xA9] = 1  # ret
    for opcode in range(0xB2, 0xB9):  # get/put field/static, invokevirtual/special/static
        sizes[opcode] = 2
    sizes[INVOKEINTERFACE] = 4
    sizes[INVOKEDYNAMIC] = 4
    sizes[0xBB] = 2  # new
    sizes[0xBC] = 1  # newarray
    sizes[0xBD] = 2  # anewarray
    sizes[0xC0] = 2  # checkcast
    sizes[0xC1] = 2  # instanceof
    sizes[0xC5] = 3  # multianewarray
    sizes[0xC6] = 2  # ifnull
    sizes[0xC7] = 2  # ifnonnull
    sizes[0xC8] = 4  # goto_w
    sizes[0xC9] = 4  # jsr_w
    # tableswitch, lookupswitch and wide are variable-length
    del sizes[TABLESWITCH], sizes[LOOKUPSWITCH], sizes[WIDE]
    return sizes


OPERAND_SIZES = _operand_sizes()


# ===================================================================
# Decoded structures
# ===================================================================

@dataclass(frozen=True)
class Constant:
    tag: int
    # Utf8 text for CONSTANT_Utf8, otherwise the referenced indexes / raw value
    value: object


class ConstantPool:
    """Indexed view of a class's constant pool (index 0 is unused)."""

    def __init__(self, entries: List[Optional[Constant]]) -> None:
        self._entries = entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Optional[Constant]]:
        return iter(self._entries)

    def get(self, index: int, tag: Optional[int] = None) -> Constant:
        if index <= 0 or index >= len(self._entries) or self._entries[index] is None:
            raise ClassFormatError(f"Invalid constant pool index {index}")
        constant = self._entries[index]
        if tag is not None and constant.tag != tag:
            raise ClassFormatError(
                f"Constant pool entry {index} has tag {constant.tag}, expected {tag}"
            )
        return constant

    def get_utf8(self, index: int) -> str:
        return self.get(index, CONSTANT_UTF8).value  # type: ignore[return-value]

    def get_class_name(self, index: int) -> str:
        """Internal (slash-separated) name of a CONSTANT_Class entry."""
        name_index = self.get(index, CONSTANT_CLASS).value
        return self.get_utf8(name_index)  # type: ignore[arg-type]

    def get_name_and_type(self, index: int) -> Tuple[str, str]:
        name_index, descriptor_index = self.get(index, CONSTANT_NAME_AND_TYPE).value  # type: ignore[misc]
        return self.get_utf8(name_index), self.get_utf8(descriptor_index)

    def get_member_ref(self, index: int) -> Tuple[str, str, str]:
        """Resolve a Fieldref/Methodref/InterfaceMethodref to (class, name, descriptor)."""
        constant = self.get(index)
        if constant.tag not in (CONSTANT_FIELDREF, CONSTANT_METHODREF, CONSTANT_INTERFACE_METHODREF):
            raise ClassFormatError(f"Constant pool entry {index} is not a member reference")
        class_index, name_and_type_index = constant.value  # type: ignore[misc]
        name, descriptor = self.get_name_and_type(name_and_type_index)
        return self.get_class_name(class_index), name, descriptor


@dataclass(frozen=True)
class Attribute:
    name: str
    info: bytes


@dataclass(frozen=True)
class CodeAttribute:
    max_stack: int
    max_locals: int
    code: bytes


@dataclass(frozen=True)
class InnerClassEntry:
    inner_class_index: int
    outer_class_index: int
    inner_name_index: int
    access_flags: int


@dataclass
class MethodInfo:
    access_flags: int
    name: str
    descriptor: str
    code: Optional[CodeAttribute] = None
    attributes: List[Attribute] = field(default_factory=list)


@dataclass
class JavaClass:
    """A decoded class file. ``class_name`` is the dotted binary name."""

    class_name: str
    super_class_name: Optional[str]
    interface_names: List[str]
    access_flags: int
    major_version: int
    minor_version: int
    constant_pool: ConstantPool
    methods: List[MethodInfo]
    attributes: List[Attribute]
    inner_classes: List[InnerClassEntry]


@dataclass(frozen=True)
class Instruction:
    offset: int
    opcode: int
    operands: bytes

    def u2(self) -> int:
        return struct.unpack_from(">H", self.operands, 0)[0]


# ===================================================================
# Reader
# ===================================================================

class _ByteReader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def _take(self, size: int) -> bytes:
        end = self.pos + size
        if end > len(self.data):
            raise ClassFormatError(
                f"Truncated class file: wanted {size} bytes at offset {self.pos}, "
                f"only {len(self.data) - self.pos} left"
            )
        chunk = self.data[self.pos:end]
        self.pos = end
        return chunk

    def u1(self) -> int:
        return self._take(1)[0]

    def u2(self) -> int:
        return struct.unpack(">H", self._take(2))[0]

    def u4(self) -> int:
        return struct.unpack(">I", self._take(4))[0]

    def raw(self, size: int) -> bytes:
        return self._take(size)


def internal_to_binary_name(name: str) -> str:
    """``com/example/Foo$Bar`` -> ``com.example.Foo$Bar``."""
    return name.replace("/", ".")


def binary_to_entry_name(class_name: str) -> str:
    """``com.example.Foo$Bar`` -> ``com/example/Foo$Bar.class`` (archive entry name)."""
    return class_name.replace(".", "/") + ".class"


def _decode_modified_utf8(data: bytes) -> str:
    # Modified UTF-8 encodes NUL as C0 80 and supplementary characters as surrogate pairs
    return data.replace(b"\xc0\x80", b"\x00").decode("utf-8", errors="surrogatepass")


def _read_constant_pool(reader: _ByteReader) -> ConstantPool:
    count = reader.u2()
    entries: List[Optional[Constant]] = [None] * count
    index = 1
    while index < count:
        tag = reader.u1()
        if tag == CONSTANT_UTF8:
            length = reader.u2()
            try:
                text = _decode_modified_utf8(reader.raw(length))
            except UnicodeDecodeError as exc:
                raise ClassFormatError(f"Malformed Utf8 constant at index {index}: {exc}") from exc
            entries[index] = Constant(tag, text)
        elif tag in (CONSTANT_CLASS, CONSTANT_STRING, CONSTANT_METHOD_TYPE, CONSTANT_MODULE, CONSTANT_PACKAGE):
            entries[index] = Constant(tag, reader.u2())
        elif tag in (
            CONSTANT_FIELDREF,
            CONSTANT_METHODREF,
            CONSTANT_INTERFACE_METHODREF,
            CONSTANT_NAME_AND_TYPE,
            CONSTANT_DYNAMIC,
            CONSTANT_INVOKE_DYNAMIC,
        ):
            entries[index] = Constant(tag, (reader.u2(), reader.u2()))
        elif tag == CONSTANT_METHOD_HANDLE:
            entries[index] = Constant(tag, (reader.u1(), reader.u2()))
        elif tag in _FIXED_CONSTANT_SIZES:
            entries[index] = Constant(tag, reader.raw(_FIXED_CONSTANT_SIZES[tag]))
        else:
            raise ClassFormatError(f"Unknown constant pool tag {tag} at index {index}")
        # 8-byte constants take two slots
        index += 2 if tag in (CONSTANT_LONG, CONSTANT_DOUBLE) else 1
    return ConstantPool(entries)


def _read_attributes(reader: _ByteReader, pool: ConstantPool) -> List[Attribute]:
    attributes = []
    for _ in range(reader.u2()):
        name = pool.get_utf8(reader.u2())
        length = reader.u4()
        attributes.append(Attribute(name, reader.raw(length)))
    return attributes


def _decode_code(info: bytes) -> CodeAttribute:
    reader = _ByteReader(info)
    max_stack = reader.u2()
    max_locals = reader.u2()
    code_length = reader.u4()
    code = reader.raw(code_length)
    # exception table and nested attributes are not needed
    return CodeAttribute(max_stack, max_locals, code)


def _decode_inner_classes(info: bytes) -> List[InnerClassEntry]:
    reader = _ByteReader(info)
    return [
        InnerClassEntry(reader.u2(), reader.u2(), reader.u2(), reader.u2())
        for _ in range(reader.u2())
    ]


def parse_class(data: bytes, source: str = "") -> JavaClass:
    """Decode a complete class file.

    Args:
        data: The raw bytes of a ``.class`` file.
        source: Optional description (archive entry) used in error messages.

    Raises:
        ClassFormatError: if the bytes are not a well-formed class file.
    """
    where = f" ({source})" if source else ""
    reader = _ByteReader(data)
    try:
        if reader.u4() != MAGIC:
            raise ClassFormatError(f"Not a class file: bad magic number{where}")
        minor_version = reader.u2()
        major_version = reader.u2()
        pool = _read_constant_pool(reader)
        access_flags = reader.u2()
        this_class = internal_to_binary_name(pool.get_class_name(reader.u2()))
        super_index = reader.u2()
        super_class = internal_to_binary_name(pool.get_class_name(super_index)) if super_index else None
        interfaces = [internal_to_binary_name(pool.get_class_name(reader.u2())) for _ in range(reader.u2())]

        for _ in range(reader.u2()):  # fields
            reader.raw(6)
            _read_attributes(reader, pool)

        methods: List[MethodInfo] = []
        for _ in range(reader.u2()):
            method_flags = reader.u2()
            name = pool.get_utf8(reader.u2())
            descriptor = pool.get_utf8(reader.u2())
            attributes = _read_attributes(reader, pool)
            code = next((_decode_code(a.info) for a in attributes if a.name == "Code"), None)
            methods.append(MethodInfo(method_flags, name, descriptor, code, attributes))

        class_attributes = _read_attributes(reader, pool)
    except ClassFormatError as exc:
        if where and where not in str(exc):
            raise ClassFormatError(f"{exc}{where}") from exc
        raise

    inner_classes: List[InnerClassEntry] = []
    for attribute in class_attributes:
        if attribute.name == "InnerClasses":
            inner_classes.extend(_decode_inner_classes(attribute.info))

    return JavaClass(
        class_name=this_class,
        super_class_name=super_class,
        interface_names=interfaces,
        access_flags=access_flags,
        major_version=major_version,
        minor_version=minor_version,
        constant_pool=pool,
        methods=methods,
        attributes=class_attributes,
        inner_classes=inner_classes,
    )


def iter_instructions(code: bytes) -> Iterator[Instruction]:
    """Walk a method body, yielding each instruction with its operand bytes."""
    pc = 0
    length = len(code)
    while pc < length:
        opcode = code[pc]
        if opcode in (TABLESWITCH, LOOKUPSWITCH):
            # operands are 4-byte aligned relative to the start of the code array
            start = pc + 1 + (-(pc + 1) % 4)
            if start + 8 > length:
                raise ClassFormatError(f"Truncated switch at offset {pc}")
            if opcode == TABLESWITCH:
                low, high = struct.unpack_from(">ii", code, start + 4)
                end = start + 12 + (high - low + 1) * 4
            else:
                npairs = struct.unpack_from(">i", code, start + 4)[0]
                end = start + 8 + npairs * 8
        elif opcode == WIDE:
            if pc + 1 >= length:
                raise ClassFormatError(f"Truncated wide instruction at offset {pc}")
            end = pc + (6 if code[pc + 1] == IINC else 4)
        elif opcode in OPERAND_SIZES:
            end = pc + 1 + OPERAND_SIZES[opcode]
        else:
            raise ClassFormatError(f"Unknown opcode 0x{opcode:02x} at offset {pc}")
        if end > length or end <= pc:
            raise ClassFormatError(f"Instruction at offset {pc} runs past the end of the code")
        yield Instruction(pc, opcode, code[pc + 1:end])
        pc = end
