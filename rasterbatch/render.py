from typing import Optional, Sequence, Tuple

from PIL import Image, ImageOps

from .errors import CompositeGeometryFailure


Size = Tuple[int, int]

# Every generated item is rendered at this resolution, whatever the traits' sizes.
CANVAS_SIZE: Size = (1024, 1024)

TRANSPARENT = (0, 0, 0, 0)


def new_canvas(size: Size = CANVAS_SIZE) -> Image.Image:
    return Image.new("RGBA", size, TRANSPARENT)


def composite(
    images: Sequence[Optional[Image.Image]],
    size: Size = CANVAS_SIZE,
) -> Image.Image:
    """
    Draw `images` back to front onto a fresh transparent canvas.

    `None` entries (layers with nothing to draw) are skipped. Later images are
    composited source-over on top of earlier ones, so opaque pixels overwrite
    and transparent ones let the layers below show through.
    """
    canvas = new_canvas(size)
    for img in images:
        if img is None:
            continue
        draw_layer(canvas, img)
    return canvas


def draw_layer(canvas: Image.Image, img: Image.Image) -> bool:
    """
    Cover-fit `img` onto the canvas, falling back to contain-fit when the
    cover geometry is degenerate. Returns False if neither fit could draw.
    """
    try:
        draw_cover(canvas, img)
        return True
    except CompositeGeometryFailure:
        pass
    try:
        draw_contain(canvas, img)
    except (ValueError, ZeroDivisionError):
        return False
    return True


def draw_cover(canvas: Image.Image, img: Image.Image) -> None:
    """
    Scale by max(w/iw, h/ih) so the image fills the canvas, then crop the
    overflow evenly from both sides.
    """
    width, height = canvas.size
    if img.width <= 0 or img.height <= 0 or width <= 0 or height <= 0:
        raise CompositeGeometryFailure(
            f"cannot cover {width}x{height} with a {img.width}x{img.height} image"
        )
    try:
        fitted = ImageOps.fit(
            _as_rgba(img),
            (width, height),
            method=Image.LANCZOS,
            centering=(0.5, 0.5),
        )
    except (ValueError, ZeroDivisionError) as exc:
        raise CompositeGeometryFailure(str(exc)) from exc
    canvas.alpha_composite(fitted)


def draw_contain(canvas: Image.Image, img: Image.Image) -> None:
    """
    Scale by min(w/iw, h/ih) so the whole image fits, centered, uncropped.
    """
    width, height = canvas.size
    fitted = ImageOps.contain(_as_rgba(img), (width, height), method=Image.LANCZOS)
    x = (width - fitted.width) // 2
    y = (height - fitted.height) // 2
    canvas.alpha_composite(fitted, dest=(x, y))


def _as_rgba(img: Image.Image) -> Image.Image:
    return img if img.mode == "RGBA" else img.convert("RGBA")
