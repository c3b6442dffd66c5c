"""
scene.py - Minimal retained-mode vector scene.

Seals and sheets are built once as a tree of primitives and then emitted
either as SVG text or drawn onto a Pillow image. Both outputs walk the same
tree, so the vector preview and the printed raster cannot drift apart.

Number formatting is fixed (3 decimals, trailing zeros stripped) so that the
SVG for a given tree is byte-stable.
"""

from dataclasses import dataclass, field
from xml.sax.saxutils import escape

from PIL import Image, ImageDraw, ImageFont


def fmt(value: float) -> str:
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


@dataclass(frozen=True)
class Circle:
    cx: float
    cy: float
    r: float
    fill: str | None = "#000"
    stroke: str | None = None
    stroke_width: float = 0.0

    def svg(self) -> str:
        attrs = f'cx="{fmt(self.cx)}" cy="{fmt(self.cy)}" r="{fmt(self.r)}" fill="{self.fill or "none"}"'
        if self.stroke:
            attrs += f' stroke="{self.stroke}" stroke-width="{fmt(self.stroke_width)}"'
        return f"<circle {attrs}/>"


@dataclass(frozen=True)
class Line:
    x1: float
    y1: float
    x2: float
    y2: float
    stroke: str = "#000"
    stroke_width: float = 1.0

    def svg(self) -> str:
        return (
            f'<line x1="{fmt(self.x1)}" y1="{fmt(self.y1)}" x2="{fmt(self.x2)}" y2="{fmt(self.y2)}" '
            f'stroke="{self.stroke}" stroke-width="{fmt(self.stroke_width)}"/>'
        )


@dataclass(frozen=True)
class Text:
    x: float
    y: float
    text: str
    size: float
    fill: str = "#000"

    def svg(self) -> str:
        return (
            f'<text x="{fmt(self.x)}" y="{fmt(self.y)}" font-size="{fmt(self.size)}" '
            f'font-family="Helvetica, Arial, sans-serif" text-anchor="middle" fill="{self.fill}">'
            f"{escape(self.text)}</text>"
        )


@dataclass(frozen=True)
class Group:
    children: tuple = ()
    dx: float = 0.0
    dy: float = 0.0
    scale: float = 1.0
    element_id: str | None = None
    comment: str | None = None

    def svg(self) -> str:
        attrs = []
        if self.element_id:
            attrs.append(f'id="{escape(self.element_id)}"')
        if self.dx or self.dy or self.scale != 1.0:
            transform = f"translate({fmt(self.dx)} {fmt(self.dy)})"
            if self.scale != 1.0:
                transform += f" scale({self.scale:.6f})"
            attrs.append(f'transform="{transform}"')
        head = "<g" + ("" if not attrs else " " + " ".join(attrs)) + ">"
        body = "".join(child.svg() for child in self.children)
        if self.comment:
            body = f"<!-- {self.comment} -->" + body
        return head + body + "</g>"


@dataclass
class Scene:
    """A drawing surface of `width` x `height` user units."""

    width: float
    height: float
    children: list = field(default_factory=list)
    unit: str = ""
    comment: str | None = None

    def add(self, *items) -> None:
        self.children.extend(items)

    def to_svg(self) -> str:
        size = f'width="{fmt(self.width)}{self.unit}" height="{fmt(self.height)}{self.unit}"'
        parts = [
            f'<svg xmlns="http://www.w3.org/2000/svg" {size} '
            f'viewBox="0 0 {fmt(self.width)} {fmt(self.height)}">'
        ]
        if self.comment:
            parts.append(f"<!-- {self.comment} -->")
        parts.extend(child.svg() for child in self.children)
        parts.append("</svg>")
        return "".join(parts)

    def to_image(self, px_per_unit: float) -> Image.Image:
        """Rasterize onto a white RGB canvas at `px_per_unit` pixels per user unit."""
        size = (
            max(1, int(round(self.width * px_per_unit))),
            max(1, int(round(self.height * px_per_unit))),
        )
        image = Image.new("RGB", size, "white")
        draw = ImageDraw.Draw(image)
        for child in self.children:
            _draw(draw, child, 0.0, 0.0, px_per_unit)
        return image


def _draw(draw: ImageDraw.ImageDraw, node, dx: float, dy: float, scale: float) -> None:
    if isinstance(node, Group):
        for child in node.children:
            _draw(draw, child, dx + node.dx * scale, dy + node.dy * scale, scale * node.scale)
    elif isinstance(node, Circle):
        cx, cy = dx + node.cx * scale, dy + node.cy * scale
        if node.stroke:
            # SVG strokes straddle the radius; Pillow draws outlines inward from the box
            width = max(1, int(round(node.stroke_width * scale)))
            r = node.r * scale + width / 2
            draw.ellipse((cx - r, cy - r, cx + r, cy + r), fill=node.fill, outline=node.stroke, width=width)
        else:
            r = node.r * scale
            draw.ellipse((cx - r, cy - r, cx + r, cy + r), fill=node.fill)
    elif isinstance(node, Line):
        width = max(1, int(round(node.stroke_width * scale)))
        draw.line(
            (dx + node.x1 * scale, dy + node.y1 * scale, dx + node.x2 * scale, dy + node.y2 * scale),
            fill=node.stroke,
            width=width,
        )
    elif isinstance(node, Text):
        font = ImageFont.load_default(size=max(1, int(round(node.size * scale))))
        draw.text(
            (dx + node.x * scale, dy + node.y * scale),
            node.text,
            fill=node.fill,
            font=font,
            anchor="ms",
        )
    else:
        raise TypeError(f"Unsupported scene node: {type(node).__name__}")
