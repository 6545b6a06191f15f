import os

from setuptools import find_packages, setup


# Read README for long description
def read_readme():
    readme_path = os.path.join(os.path.dirname(__file__), "README.md")
    if os.path.exists(readme_path):
        with open(readme_path, "r", encoding="utf-8") as f:
            return f.read()
    return "Keypoint annotation core for video frames"


setup(
    name="video-keypoint-annotator",
    version="1.0.0",
    description="Frame-indexed keypoint annotation, edge-based auto keypoints and CSV export",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    # Package configuration
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    include_package_data=True,
    package_data={
        "keypoint_annotator": ["*.json", "*.yaml", "*.yml"],
    },
    install_requires=[
        "numpy",
        "opencv-python-headless",
        "PyYAML",
    ],
    extras_require={
        "test": ["pytest"],
    },
    # Console scripts
    entry_points={
        "console_scripts": [
            "keypoint-annotator=keypoint_annotator.app.launcher:main",
        ],
    },
    # Metadata
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Scientific/Engineering :: Image Recognition",
    ],
    python_requires=">=3.11",
    keywords="keypoint annotation, video, edge detection, opencv, skeleton",
)
