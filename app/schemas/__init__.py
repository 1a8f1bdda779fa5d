from app.schemas.auth import Token, UserCreate, UserLogin, UserResponse, UserUpdate
from app.schemas.client import ClientCreate, ClientResponse, ClientUpdate
from app.schemas.link import LinkCreate, LinkExpirationUpdate, LinkResponse, LinkSummary
from app.schemas.questionnaire import (
    EventTypeCreate, EventTypeResponse, EventTypeUpdate, QuestionCreate, QuestionResponse,
    QuestionnaireResponseOut, QuestionnaireView, ResponsesBody,
)
from app.schemas.contract import (
    ContractContentUpdate, ContractGenerate, ContractResponse, ContractValidate, CustomVariableCreate,
    CustomVariableResponse, CustomVariableUpdate, PortalContractResponse, SignRequest, SignResponse,
    SignatureResponse, TemplateCreate, TemplateResponse, TemplateSaveResponse, TemplateUpdate,
)
from app.schemas.gallery import (
    GalleryCreate, GalleryResponse, GalleryUpdate, PhotoResponse, PhotosUpload, VisibilityUpdate,
)
