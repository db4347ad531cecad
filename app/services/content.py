"""
app/services/content.py

Extração de hashtag e links do conteúdo de um Note.

Funções puras, sem acesso a armazenamento ou rede. O conteúdo chega em
HTML (como o Mastodon entrega) ou texto puro; os dois casos passam
pelo BeautifulSoup.
"""

import re
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, ParserRejectedMarkup

from app.activitypub.activities import Post
from app.errors import InvalidContent

_URL_RE = re.compile(r"https?://[^\s<>\"']+")

# Pontuação que costuma grudar no fim de uma URL em texto corrido
_TRAILING_PUNCTUATION = ".,;:!?)]}"


def _parse(content: str) -> BeautifulSoup:
    try:
        return BeautifulSoup(content, "html.parser")
    except ParserRejectedMarkup as e:
        raise InvalidContent(f"Unparseable note content: {e}") from e


def _is_http_url(url: str) -> bool:
    parts = urlsplit(url)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def _is_mention_or_hashtag(anchor) -> bool:
    # Mastodon marca menções e hashtags com class="mention" / rel="tag"
    classes = anchor.get("class") or []
    rel = anchor.get("rel") or []
    return "mention" in classes or "hashtag" in classes or "tag" in rel


def has_tag(post: Post, tag: str) -> bool:
    """
    Verifica se o post carrega a hashtag, sem diferenciar maiúsculas.

    Vale tanto a tag estruturada (type=Hashtag) quanto a hashtag escrita
    no conteúdo, seja no HTML bruto ou no texto renderizado.
    """
    wanted = tag.lower()
    for entry in post.tags:
        if entry.kind.lower() == "hashtag" and entry.name.lower() == wanted:
            return True

    pattern = re.compile(re.escape(wanted) + r"(?!\w)")
    # Sem separador: no HTML do Mastodon "#" e o nome ficam em nós distintos
    text = _parse(post.content).get_text()
    return bool(pattern.search(post.content.lower()) or pattern.search(text.lower()))


def extract_links(content: str) -> list[str]:
    """
    Retorna os links HTTP(S) do conteúdo, na ordem em que aparecem.

    Primeiro os href das âncoras (ignorando menções e hashtags); se não
    houver nenhuma, procura URLs soltas no texto.
    """
    soup = _parse(content)

    links = [
        anchor["href"]
        for anchor in soup.find_all("a", href=True)
        if not _is_mention_or_hashtag(anchor) and _is_http_url(anchor["href"])
    ]
    if links:
        return links

    found = []
    for match in _URL_RE.finditer(soup.get_text(" ")):
        url = match.group(0).rstrip(_TRAILING_PUNCTUATION)
        if _is_http_url(url):
            found.append(url)
    return found


def subject_url(post: Post, tag: str) -> str | None:
    """
    URL do post de blog que um Note top-level comenta, ou None se o Note
    não passa nos dois filtros (hashtag E pelo menos um link).

    Só o primeiro link conta: não há como saber qual dos links é o blog.
    """
    if not has_tag(post, tag):
        return None
    links = extract_links(post.content)
    return links[0] if links else None
