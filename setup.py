from setuptools import setup, find_packages

with open("requirements.txt") as f:
    requirements = f.read().splitlines()

setup(
    name="openpose_wrapper",
    version="1.0.0",
    author="IIT Tirupati - Intelligent Systems Lab",
    description="Stateful body, face and hand keypoint detection on OpenPose models",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main"],
    install_requires=requirements,
    extras_require={
        "mediapipe": ["mediapipe>=0.10"],
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.11",
    classifiers=[
        "Programming Language :: Python :: 3.12",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
