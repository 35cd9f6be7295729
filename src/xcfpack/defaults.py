"""Defaults reproducing the Firebase + GoogleSignIn macOS xcframework build."""

DEFAULT_FIREBASE_VERSION = "12.8.0"
DEFAULT_GOOGLESIGNIN_VERSION = "7.0.0"
DEFAULT_WORK_DIR = "/tmp/firebase-mac-build"

DEFAULT_ARCHIVE_URL = (
    "https://github.com/firebase/firebase-ios-sdk/releases/download/{version}/Firebase.zip"
)
DEFAULT_ARCHIVE_ROOT = "Firebase"
DEFAULT_SOURCE_URL = "https://github.com/google/GoogleSignIn-iOS.git"
DEFAULT_SOURCE_PRODUCT = "GoogleSignIn"
DEFAULT_SOURCE_PACKAGE = "GoogleSignIn-iOS"
DEFAULT_PLATFORM_VERSION = "10.15"
DEFAULT_FETCH_RETRIES = 3

DEFAULT_BUNDLE_ID_PREFIX = "com.speechify.xcframework"
DEFAULT_COMBINED_ZIP_NAME = "firebase-mac-xcframeworks.zip"
DEFAULT_CHECKSUMS_FILENAME = "checksums.txt"

DEFAULT_PACKAGE_NAME = "firebase-mac-xcframework"
DEFAULT_BASE_URL = (
    "https://github.com/SpeechifyInc/firebase-mac-xcframework/releases/download/{tag}"
)
DEFAULT_LOCAL_PROBE = "FirebaseCore"

DEFAULT_PREBUILT: list[dict[str, object]] = [
    {"path": "FirebaseAnalytics/FirebaseCore.xcframework"},
    {"path": "FirebaseAnalytics/FirebaseCoreInternal.xcframework"},
    {"path": "FirebaseAnalytics/FirebaseInstallations.xcframework"},
    {"path": "FirebaseAnalytics/GoogleUtilities.xcframework"},
    {"path": "FirebaseAnalytics/FBLPromises.xcframework"},
    {"path": "FirebaseAnalytics/nanopb.xcframework"},
    {"path": "FirebaseAuth/FirebaseAuth.xcframework"},
    {"path": "FirebaseAuth/FirebaseAppCheckInterop.xcframework"},
    {"path": "FirebaseAuth/FirebaseAuthInterop.xcframework"},
    {"path": "FirebaseAuth/FirebaseCoreExtension.xcframework"},
]

DEFAULT_ARTIFACTS: list[dict[str, object]] = [
    {
        "name": "GTMSessionFetcher",
        "modules": ["GTMSessionFetcherCore"],
        "headers": "gtm-session-fetcher/Sources/Core/Public",
    },
    {
        "name": "AppAuthCore",
        "modules": ["AppAuthCore"],
        "headers": "AppAuth-iOS/Sources/AppAuthCore",
    },
    {
        "name": "AppAuth",
        "modules": ["AppAuth"],
        "headers": "AppAuth-iOS/Sources/AppAuth",
        "optional": True,
    },
    {
        "name": "GTMAppAuth",
        "modules": ["GTMAppAuth"],
        "headers": "GTMAppAuth/Sources/Public/GTMAppAuth/Include",
    },
    {
        "name": "GoogleSignIn",
        "modules": ["GoogleSignIn"],
        "headers": "GoogleSignIn-iOS/GoogleSignIn/Sources/Public",
    },
]

DEFAULT_PRODUCTS: list[dict[str, object]] = [
    {
        "name": "FirebaseAuth",
        "dependencies": [
            {"product": "FirebaseCore"},
            "FirebaseAuth",
            "FirebaseCoreExtension",
            "FirebaseInstallations",
            "FirebaseAppCheckInterop",
            "FirebaseAuthInterop",
            "GTMSessionFetcher",
        ],
    },
    {
        "name": "FirebaseCore",
        "dependencies": [
            "FirebaseCore",
            "FirebaseCoreInternal",
            "GoogleUtilities",
            "FBLPromises",
            "nanopb",
        ],
    },
    {
        "name": "GoogleSignIn",
        "dependencies": [
            "GoogleSignIn",
            "AppAuth",
            "AppAuthCore",
            "GTMAppAuth",
            "GTMSessionFetcher",
        ],
    },
]
