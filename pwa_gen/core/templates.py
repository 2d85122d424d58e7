from __future__ import annotations

import json

from pwa_gen.core.schema import GenerateOptions

MANIFEST_PATH = "public/manifest.json"
SERVICE_WORKER_PATH = "public/sw.js"
OFFLINE_PAGE_PATH = "public/offline.html"
SW_REGISTRATION_MARKER = "navigator.serviceWorker.register"

DEFAULT_ICONS: list[dict[str, str]] = [
    {"src": "pwa-192x192.png", "sizes": "192x192", "type": "image/png"},
    {"src": "pwa-512x512.png", "sizes": "512x512", "type": "image/png"},
    {
        "src": "maskable-icon-512x512.png",
        "sizes": "512x512",
        "type": "image/png",
        "purpose": "maskable",
    },
]


def render_manifest(options: GenerateOptions) -> str:
    manifest = {
        "$schema": "https://json.schemastore.org/web-manifest-combined.json",
        "start_url": "/",
        "display": "standalone",
        "name": options.name,
        "short_name": options.short_name,
        "theme_color": options.theme_color,
        "background_color": options.background_color,
        "icons": DEFAULT_ICONS,
    }
    return json.dumps(manifest, indent=2)


def render_service_worker() -> str:
    return """importScripts('https://storage.googleapis.com/workbox-cdn/releases/6.5.4/workbox-sw.js');

workbox.precaching.precacheAndRoute(self.__WB_MANIFEST || []);

workbox.routing.registerRoute(
  ({ request }) => ['style', 'script', 'worker', 'image'].includes(request.destination),
  new workbox.strategies.StaleWhileRevalidate({ cacheName: 'static-assets-v1' })
);

workbox.routing.registerRoute(
  ({ request }) => request.mode === 'navigate',
  new workbox.strategies.NetworkFirst({ cacheName: 'navigation-v1', fallback: '/offline.html' })
);

self.addEventListener('message', (event) => {
  if (event.data && event.data.type === 'SKIP_WAITING') {
    self.skipWaiting();
  }
});
"""


def render_offline_page(options: GenerateOptions) -> str:
    return f"""<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <meta name="theme-color" content="{options.theme_color}" />
    <title>{options.short_name} - Offline</title>
  </head>
  <body style="background:{options.background_color}">
    <h1>You are offline</h1>
    <p>{options.name} will be back as soon as your connection returns.</p>
  </body>
</html>
"""


def render_entry_file(entry_file: str) -> str:
    return f"""// {entry_file}
// Service worker registration added by PWA_Gen.
if ('serviceWorker' in navigator) {{
  window.addEventListener('load', () => {{
    {SW_REGISTRATION_MARKER}('/sw.js').catch((error) => {{
      console.error('Service worker registration failed', error);
    }});
  }});
}}
"""
