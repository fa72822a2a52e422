"""描述符 s-表达式读写

包描述符文件与 Package-Requires 头共用同一套文本语法:

    (define-vc-package "foo" (vc . "1.2") "Summary"
      (("bar" "1.0"))
      :upstream (git "https://example.com/foo.git" nil nil))

映射规则:
  - 列表      <-> list
  - 字符串    <-> str
  - 整数      <-> int
  - 符号      <-> Symbol（关键字 :foo 也是符号）
  - nil       <-> None
  - t         <-> True
  - (a . b)   <-> Pair
  - 'x        ->  x（引号只在读取时剥离）
  - ; 注释    ->  忽略
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, NamedTuple

from lark import Lark, Token, Transformer
from lark.exceptions import LarkError


class SexpError(ValueError):
    """s-表达式语法错误"""


class Symbol(str):
    """符号，与普通字符串区分"""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"Symbol({str(self)!r})"

    @property
    def is_keyword(self) -> bool:
        return self.startswith(":")


class Pair(NamedTuple):
    """点对 (car . cdr)"""

    car: Any
    cdr: Any


_GRAMMAR_PATH = Path(__file__).with_name("sexp.lark")

_INT_RE = re.compile(r"^[-+]?\d+$")

_ESCAPES = {"n": "\n", "t": "\t", '"': '"', "\\": "\\"}


def _unescape(raw: str) -> str:
    body = raw[1:-1]
    out: list[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


class _ToPython(Transformer):
    """语法树 -> Python 值"""

    def start(self, items: list[Any]) -> list[Any]:
        return list(items)

    def seq(self, items: list[Any]) -> list[Any]:
        return list(items)

    def pair(self, items: list[Any]) -> Pair:
        car, cdr = items
        return Pair(car, cdr)

    def quoted(self, items: list[Any]) -> Any:
        return items[0]

    def string(self, items: list[Token]) -> str:
        return _unescape(str(items[0]))

    def atom(self, items: list[Token]) -> Any:
        raw = str(items[0])
        if _INT_RE.match(raw):
            return int(raw)
        if raw == "nil":
            return None
        if raw == "t":
            return True
        return Symbol(raw)


_PARSER = Lark(
    _GRAMMAR_PATH.read_text(encoding="utf-8"),
    parser="lalr",
    lexer="basic",
    start="start",
    maybe_placeholders=False,
    transformer=_ToPython(),
)


def read_all(text: str) -> list[Any]:
    """读取文本中的全部顶层表达式"""
    try:
        return _PARSER.parse(text)
    except LarkError as e:
        raise SexpError(f"s-表达式语法错误: {e}") from e


def read(text: str) -> Any:
    """读取恰好一个顶层表达式"""
    forms = read_all(text)
    if len(forms) != 1:
        raise SexpError(f"期望 1 个表达式，实际 {len(forms)} 个")
    return forms[0]


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def dumps(obj: Any) -> str:
    """把 Python 值序列化为 s-表达式文本"""
    if obj is None:
        return "nil"
    if obj is True:
        return "t"
    if isinstance(obj, Symbol):
        return str(obj)
    if isinstance(obj, str):
        return _quote(obj)
    if isinstance(obj, bool):
        # False 没有独立表示，统一写成 nil
        return "nil"
    if isinstance(obj, int):
        return str(obj)
    if isinstance(obj, Pair):
        return f"({dumps(obj.car)} . {dumps(obj.cdr)})"
    if isinstance(obj, (list, tuple)):
        return "(" + " ".join(dumps(x) for x in obj) + ")"
    raise SexpError(f"不支持序列化的类型: {type(obj).__name__}")
