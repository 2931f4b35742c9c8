"""Manual reverse image search services.

These are links only; nothing is uploaded anywhere. The user opens each
service and drops the photo in themselves.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SearchService:
    name: str
    url: str
    description: str


SEARCH_SERVICES: tuple[SearchService, ...] = (
    SearchService(
        name="Google Lens",
        url="https://lens.google.com/",
        description="Best for identifying objects, people, and finding similar images.",
    ),
    SearchService(
        name="TinEye",
        url="https://tineye.com/",
        description="Specializes in finding exact duplicates and modified copies.",
    ),
    SearchService(
        name="Yandex Images",
        url="https://yandex.com/images/",
        description="Powerful facial recognition algorithms (good for social profiles).",
    ),
    SearchService(
        name="Bing Visual Search",
        url="https://www.bing.com/visualsearch",
        description="Microsoft's search engine with solid face matching capabilities.",
    ),
)


def search_services() -> list[SearchService]:
    return list(SEARCH_SERVICES)
