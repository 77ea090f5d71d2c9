from pathlib import Path

from setuptools import find_packages, setup

ROOT = Path(__file__).parent
README = (ROOT / "README.md").read_text(encoding="utf-8") if (ROOT / "README.md").exists() else ""

setup(
    name="pyanomcam",
    version="0.1.0",
    description="Camera anomaly detection: ONNX inference, calibrated scores and heatmap overlays",
    long_description=README,
    long_description_content_type="text/markdown",
    author="pyanomcam Contributors",
    packages=find_packages(exclude=("tests", "tests.*")),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.19",
        "Pillow>=8.0.0",
        "opencv-python>=4.5.0",
        "onnxruntime>=1.14.0",
    ],
    extras_require={
        "yaml": [
            "PyYAML>=5.4",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
        ],
        "all": [
            "pyanomcam[yaml,dev]",
        ],
    },
    include_package_data=True,
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering :: Image Recognition",
    ],
    keywords=[
        "anomaly-detection",
        "computer-vision",
        "onnx",
        "heatmap",
        "camera",
    ],
    entry_points={
        "console_scripts": [
            "pyanomcam-infer=pyanomcam.infer_cli:main",
            "pyanomcam-live=pyanomcam.live_cli:main",
        ],
    },
)
