"""
Shared fixtures: a fake TYPO3 installation on disk and in-memory host doubles.
"""

import json

import pytest

from zabbix_client.host import PackageInfo


EM_CONF_TEMPLATE = """<?php

/***************************************************************
 * Extension Manager/Repository config file for ext "{key}".
 ***************************************************************/

$EM_CONF[$_EXTKEY] = [
    'title' => '{title}',
    'description' => 'Test extension',
    'category' => 'plugin',
    'state' => 'stable',
    'version' => '{version}',
    'constraints' => [
        'depends' => [
            'typo3' => '12.4.0-12.4.99',
        ],
        'conflicts' => [],
        'suggests' => [],
    ],
];
"""


def write_extension(base, key, version=None):
    """Create an extension directory, with ext_emconf.php when version is given."""
    ext_dir = base / key
    ext_dir.mkdir(parents=True)
    if version is not None:
        (ext_dir / "ext_emconf.php").write_text(
            EM_CONF_TEMPLATE.format(key=key, title=key.title(), version=version),
            encoding="utf-8",
        )
    return ext_dir


class FakeRegistry:
    """In-memory package registry."""

    def __init__(self, packages=None):
        self.packages = list(packages or [])
        self.calls = 0

    def get_active_packages(self):
        self.calls += 1
        return list(self.packages)


class FakeLoadCheck:
    """Answers from a fixed set of loaded keys."""

    def __init__(self, loaded=()):
        self.loaded = set(loaded)

    def is_loaded(self, ext_key):
        return ext_key in self.loaded


@pytest.fixture
def public_path(tmp_path):
    """Public web root of a classic-mode TYPO3 install with a few extensions."""
    public = tmp_path / "public"
    sysext = public / "typo3" / "sysext"
    ext = public / "typo3conf" / "ext"

    write_extension(sysext, "core", "12.4.10")
    write_extension(sysext, "backend", "12.4.10")
    write_extension(sysext, "recycler", "12.4.10")

    write_extension(ext, "news", "11.1.0")
    write_extension(ext, "bootstrap_package", "14.0.7")
    write_extension(ext, "broken_meta")

    return public


@pytest.fixture
def packages():
    return [
        PackageInfo("core", "typo3-cms-framework", "12.4.10"),
        PackageInfo("backend", "typo3-cms-framework", "12.4.10"),
        PackageInfo("news", "typo3-cms-extension", "11.1.0"),
        PackageInfo("container", "typo3-cms-extension", "2.3.1"),
        PackageInfo("some_library", "library", "1.0.0"),
    ]


@pytest.fixture
def registry(packages):
    return FakeRegistry(packages)


@pytest.fixture
def load_check():
    return FakeLoadCheck({"core", "backend", "news", "container"})


@pytest.fixture
def composer_project(tmp_path):
    """Composer-mode project: public/ plus vendor/composer/installed.json."""
    project = tmp_path / "project"
    public = project / "public"
    public.mkdir(parents=True)
    installed = project / "vendor" / "composer" / "installed.json"
    installed.parent.mkdir(parents=True)
    installed.write_text(json.dumps({
        "packages": [
            {
                "name": "typo3/cms-core",
                "version": "v12.4.10",
                "type": "typo3-cms-framework",
                "install-path": "../typo3/cms-core",
                "extra": {"typo3/cms": {"extension-key": "core"}},
            },
            {
                "name": "georgringer/news",
                "version": "11.1.0",
                "type": "typo3-cms-extension",
                "install-path": "../georgringer/news",
                "extra": {"typo3/cms": {"extension-key": "news"}},
            },
            {
                "name": "b13/container",
                "version": "2.3.1",
                "type": "typo3-cms-extension",
                "install-path": "../b13/container",
            },
            {
                "name": "symfony/console",
                "version": "v6.4.1",
                "type": "library",
            },
        ],
        "dev": True,
        "dev-package-names": [],
    }), encoding="utf-8")
    return project
