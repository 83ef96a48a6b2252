"""Value wrappers that render nicely in structured log output."""

from typing import NamedTuple

from rich.pretty import pretty_repr


class Pretty(NamedTuple):
  value: object

  def __str__(self) -> str:
    return pretty_repr(self.value, max_string=80)


class Unit(NamedTuple):
  value: float


class Seconds(Unit):
  def __str__(self) -> str:
    return f"{self.value:.3}s"


class Chars(Unit):
  def __str__(self) -> str:
    return f"{int(self.value)} chars"
