"""Builders for test fixtures: HTML pages and images."""

from io import BytesIO

from PIL import Image


def make_image(width: int = 400, height: int = 200, fmt: str = "PNG") -> bytes:
    """Encode a solid-color test image."""
    out = BytesIO()
    mode = "RGBA" if fmt == "PNG" else "RGB"
    Image.new(mode, (width, height), (200, 30, 30)).save(out, fmt)
    return out.getvalue()


def article_html(title: str = "Article", url: str = "", image: str = "", description: str = "") -> str:
    """Build an item page with Open Graph tags (empty values are omitted)."""
    tags = []
    if title:
        tags.append(f'<meta property="og:title" content="{title}">')
    if url:
        tags.append(f'<meta property="og:url" content="{url}">')
    if image:
        tags.append(f'<meta property="og:image" content="{image}">')
    if description:
        tags.append(f'<meta property="og:description" content="{description}">')
    return f"<html><head><title>Doc title</title>{''.join(tags)}</head><body></body></html>"


def crawl_html(href: str) -> str:
    """Build a crawl page whose latest item is linked from ``ul.posts li a``."""
    return f"""
    <html><body>
        <ul class="posts">
            <li><a href="{href}">Newest</a></li>
            <li><a href="/older">Older</a></li>
        </ul>
    </body></html>
    """
