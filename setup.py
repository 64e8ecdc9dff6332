from setuptools import setup, find_packages

# --- SETTINGS ---

install_requires = [
    # 1. Earth Engine and mapping
    "earthengine-api",
    "geemap<0.37",  # 0.37.x: geemap.foliumap fails to import
    "folium",
    # 2. Charts and tables
    "matplotlib",
    "pandas",
    # 3. Direct downloads
    "requests",
]

extras_require = {
    "test": ["pytest"],
}

setup(
    name="soilcarbon",
    version="1.2",
    description="Soil carbon input layers (SOC, clay, land cover, NDVI, climate) from Google Earth Engine",
    packages=find_packages(exclude=["tests"]),
    py_modules=["run"],
    python_requires=">=3.8",
    install_requires=install_requires,
    extras_require=extras_require,
    entry_points={
        "console_scripts": [
            "soilcarbon=soilcarbon.cli:main",
        ],
    },
)
